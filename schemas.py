from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel

class ProductPayload(BaseModel):
    # Todo opcional: crear exige los tres campos, actualizar no
    name: Optional[str] = None
    price: Optional[Decimal] = None
    image: Optional[str] = None

    def missing_fields(self) -> List[str]:
        return [field for field in ("name", "price", "image") if not getattr(self, field)]

class Product(BaseModel):
    id: int
    name: str
    price: Decimal
    image: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class ProductEnvelope(BaseModel):
    success: bool = True
    data: Product

class ProductListEnvelope(BaseModel):
    success: bool = True
    data: List[Product]

class ErrorEnvelope(BaseModel):
    success: bool = False
    message: str
