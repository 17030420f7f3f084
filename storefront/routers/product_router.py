from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import crud
from ..auth import get_current_admin
from ..database import get_db
from ..schemas import ProductCreate, ProductListResponse, ProductOut, ProductUpdate

router = APIRouter(prefix="/products", tags=["products"])


@router.get("/", response_model=ProductListResponse)
def view_products(
    page: int = Query(1, ge=1, description="**Page** number"),
    limit: int = Query(12, ge=1, le=100, description="**Limit** per page"),
    category: Optional[str] = Query(None, description="**Category slug**"),
    search: Optional[str] = Query(None, description="**Search** in name or description"),
    db: Session = Depends(get_db),
):
    products, pagination = crud.get_products(db, page=page, limit=limit, category=category, search=search)
    return {"products": products, "pagination": pagination}


@router.get("/admin", response_model=ProductListResponse)
def view_products_admin(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, description="**Search** in name, description or category"),
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    products, pagination = crud.get_products(
        db, page=page, limit=limit, search=search, include_inactive=True
    )
    return {"products": products, "pagination": pagination}


@router.get("/{product_id}", response_model=ProductOut)
def view_product(product_id: int, db: Session = Depends(get_db)):
    product = crud.get_product(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_product(
    body: ProductCreate,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    product = crud.create_product(db, body.model_dump())
    return {"message": "Product created successfully", "product": ProductOut.model_validate(product)}


@router.put("/{product_id}")
@router.patch("/{product_id}")
def update_product(
    product_id: int,
    body: ProductUpdate,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    product = crud.update_product(db, product_id, body.model_dump(exclude_unset=True))
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"message": "Product updated successfully", "product": ProductOut.model_validate(product)}


@router.delete("/{product_id}")
def delete_product(
    product_id: int,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    product = crud.delete_product(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"message": "Product deleted successfully"}
