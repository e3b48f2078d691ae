from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import crud, database, schemas

router = APIRouter(prefix="/products", tags=["products"])

# --- ENDPOINTS ---

@router.get("", response_model=schemas.ProductListEnvelope)
def get_products(db: Session = Depends(database.get_db)):
    """Todos los productos, el más reciente primero"""
    return {"success": True, "data": crud.list_products(db)}

@router.post("", response_model=schemas.ProductEnvelope, status_code=201)
def create_product(payload: schemas.ProductPayload, db: Session = Depends(database.get_db)):
    return {"success": True, "data": crud.create_product(db, payload)}

@router.get("/{product_id}", response_model=schemas.ProductEnvelope)
def get_product(product_id: int, db: Session = Depends(database.get_db)):
    return {"success": True, "data": crud.get_product(db, product_id)}

@router.put("/{product_id}", response_model=schemas.ProductEnvelope)
def update_product(product_id: int, payload: schemas.ProductPayload, db: Session = Depends(database.get_db)):
    """Reemplazo completo: lo que no venga en el body se guarda como null"""
    return {"success": True, "data": crud.update_product(db, product_id, payload)}

@router.delete("/{product_id}", response_model=schemas.ProductEnvelope)
def delete_product(product_id: int, db: Session = Depends(database.get_db)):
    """Devuelve la fila tal como estaba antes de borrarla"""
    return {"success": True, "data": crud.delete_product(db, product_id)}
