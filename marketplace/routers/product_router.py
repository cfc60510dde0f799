from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Dict, Optional

from .. import crud, schemas, stock_ledger
from ..auth import get_current_seller
from ..database import get_db

router = APIRouter(prefix="/products", tags=["Products"])


@router.get("/", response_model=list[schemas.ProductOut])
def list_products(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    seller_id: Optional[int] = Query(None, gt=0),
    include_sold_out: bool = Query(False, description="Also list products with no remaining stock"),
    db: Session = Depends(get_db)
):
    return stock_ledger.list_available_products(
        db, skip=skip, limit=limit, seller_id=seller_id, include_sold_out=include_sold_out
    )


@router.get("/{product_id}", response_model=schemas.ProductOut)
def get_product(
    product_id: int,
    db: Session = Depends(get_db)
):
    product = crud.get_product(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    out = schemas.ProductOut.model_validate(product)
    out.remaining_stock = stock_ledger.compute_remaining_stock(db, product_id)
    return out


@router.post("/", response_model=schemas.ProductOut, status_code=201)
def create_product(
    body: schemas.ProductCreate,
    current_seller: Dict = Depends(get_current_seller),
    db: Session = Depends(get_db)
):
    return crud.create_product(db, current_seller["id"], body.model_dump())


@router.patch("/{product_id}", response_model=schemas.ProductOut)
def update_product(
    product_id: int,
    body: schemas.ProductUpdate,
    current_seller: Dict = Depends(get_current_seller),
    db: Session = Depends(get_db)
):
    product = crud.get_product(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    if product.seller_id != current_seller["id"] and not current_seller.get("is_admin"):
        raise HTTPException(status_code=403, detail="You can only edit your own products")

    update_data = {k: v for k, v in body.model_dump().items() if v is not None}
    return crud.update_product(db, product, update_data)
