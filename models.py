from sqlalchemy import Column, DateTime, Integer, Numeric, String
from sqlalchemy.sql import func

from database import Base

class Product(Base):
    __tablename__ = "products"
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    image = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime, server_default=func.now()) # lo asigna la base, no la app
    __table_args__ = {"sqlite_autoincrement": True} # en SQLite los ids tampoco se reutilizan
