from typing import Dict, Optional

from fastapi import APIRouter, Depends, Form, HTTPException, status
from sqlalchemy.orm import Session

from .. import crud
from ..auth import get_current_admin
from ..database import get_db
from ..schemas import CategoryDetail, CategoryOut, CategoryWithCount, ProductOut

router = APIRouter(prefix="/categories", tags=["categories"])


def _with_active_products(category) -> CategoryDetail:
    detail = CategoryDetail.model_validate(category)
    detail.products = [ProductOut.model_validate(p) for p in category.products if p.is_active]
    return detail


@router.get("/", response_model=list[CategoryWithCount])
def list_categories(db: Session = Depends(get_db)):
    return [
        CategoryWithCount(**CategoryOut.model_validate(category).model_dump(), product_count=count)
        for category, count in crud.get_categories_with_counts(db)
    ]


@router.get("/id/{category_id}")
def get_category_by_id(category_id: int, db: Session = Depends(get_db)):
    category = crud.get_category(db, category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return {
        "category": _with_active_products(category),
        "product_count": crud.count_products_in_category(db, category_id),
    }


@router.get("/{slug}", response_model=CategoryDetail)
def get_category_by_slug(slug: str, db: Session = Depends(get_db)):
    category = crud.get_category_by_slug(db, slug)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return _with_active_products(category)


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_category(
    name: str = Form("", description="**Category name**", examples=[""]),
    slug: str = Form("", description="**URL slug** (unique)", examples=[""]),
    description: Optional[str] = Form(None, description="**Description** (optional)", examples=[""]),
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    category = crud.create_category(db, name=name, slug=slug, description=description)
    return {"message": "Category created successfully", "category": CategoryOut.model_validate(category)}


@router.put("/{category_id}")
def update_category(
    category_id: int,
    name: Optional[str] = Form(None, description="**New name** (optional)", examples=[""]),
    slug: Optional[str] = Form(None, description="**New slug** (optional)", examples=[""]),
    description: Optional[str] = Form(None, description="**New description** (optional)", examples=[""]),
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    update_data = {"name": name or None, "slug": slug or None, "description": description}
    category = crud.update_category(db, category_id, update_data)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return {"message": "Category updated successfully", "category": CategoryOut.model_validate(category)}


@router.delete("/{category_id}")
def delete_category(
    category_id: int,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    category = crud.delete_category(db, category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return {"message": "Category deleted successfully"}
