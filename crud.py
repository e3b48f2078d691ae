import logging
from contextlib import contextmanager
from typing import List

from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import models, schemas
from errors import MissingFieldsError, ProductNotFoundError, StorageError

logger = logging.getLogger(__name__)

products = models.Product.__table__

# INTEGER con signo de 64 bits: fuera de ese rango no puede haber fila
MIN_ID = -(2 ** 63)
MAX_ID = 2 ** 63 - 1


@contextmanager
def storage_errors(db: Session, operation: str):
    """Cualquier fallo de SQLAlchemy: rollback, log y StorageError hacia arriba."""
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Error in %s: %s", operation, exc, exc_info=True)
        raise StorageError(operation) from exc


def check_id(product_id: int):
    if not MIN_ID <= product_id <= MAX_ID:
        raise ProductNotFoundError(product_id)


def _find(db: Session, product_id: int) -> models.Product:
    product = db.query(models.Product).filter(models.Product.id == product_id).first()
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def list_products(db: Session) -> List[models.Product]:
    """Más recientes primero; el id desempata filas con el mismo timestamp."""
    with storage_errors(db, "list_products"):
        return (
            db.query(models.Product)
            .order_by(models.Product.created_at.desc(), models.Product.id.desc())
            .all()
        )


def create_product(db: Session, payload: schemas.ProductPayload) -> models.Product:
    missing = payload.missing_fields()
    if missing:
        raise MissingFieldsError(missing)

    with storage_errors(db, "create_product"):
        db_prod = models.Product(name=payload.name, price=payload.price, image=payload.image)
        db.add(db_prod)
        db.commit()
        db.refresh(db_prod)
        return db_prod


def get_product(db: Session, product_id: int) -> models.Product:
    check_id(product_id)
    with storage_errors(db, "get_product"):
        return _find(db, product_id)


def update_product(db: Session, product_id: int, payload: schemas.ProductPayload) -> schemas.Product:
    """
    Reemplaza name/price/image tal cual llegan, sin validar presencia.
    Un null en un campo NOT NULL lo rechaza la base (y acaba en 500).
    Un solo UPDATE ... RETURNING: si la fila no existe en ese momento, 404.
    """
    check_id(product_id)
    with storage_errors(db, "update_product"):
        row = db.execute(
            update(products)
            .where(products.c.id == product_id)
            .values(name=payload.name, price=payload.price, image=payload.image)
            .returning(*products.c)
        ).mappings().first()
        if row is None:
            db.rollback()
            raise ProductNotFoundError(product_id)
        updated = schemas.Product.model_validate(dict(row))
        db.commit()
        return updated


def delete_product(db: Session, product_id: int) -> schemas.Product:
    """Un solo DELETE ... RETURNING; devuelve la fila tal como estaba."""
    check_id(product_id)
    with storage_errors(db, "delete_product"):
        row = db.execute(
            delete(products).where(products.c.id == product_id).returning(*products.c)
        ).mappings().first()
        if row is None:
            db.rollback()
            raise ProductNotFoundError(product_id)
        deleted = schemas.Product.model_validate(dict(row))
        db.commit()
        return deleted
