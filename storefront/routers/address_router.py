from typing import Dict, Optional

from fastapi import APIRouter, Depends, Form, HTTPException, status
from sqlalchemy.orm import Session

from .. import crud
from ..auth import get_current_user
from ..database import get_db
from ..schemas import AddressOut

router = APIRouter(prefix="/addresses", tags=["addresses"])


@router.get("/")
def list_addresses(
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    addresses = crud.get_addresses(db, current_user["id"])
    return {"addresses": [AddressOut.model_validate(a) for a in addresses]}


@router.get("/{address_id}")
def get_address(
    address_id: int,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    address = crud.get_user_address(db, current_user["id"], address_id)
    if not address:
        raise HTTPException(status_code=404, detail="Address not found")
    return {"address": AddressOut.model_validate(address)}


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_address(
    street: str = Form("", description="**Street**", examples=[""]),
    city: str = Form("", description="**City**", examples=[""]),
    state: str = Form("", description="**State**", examples=[""]),
    zip_code: str = Form("", description="**Zip code**", examples=[""]),
    number: str = Form("1", description="**Number**", examples=[""]),
    neighborhood: str = Form("Centro", description="**Neighborhood**", examples=[""]),
    phone: Optional[str] = Form(None, description="**Phone** (optional)", examples=[""]),
    is_default: bool = Form(False, description="**Use as default address**"),
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    address = crud.create_address(
        db,
        current_user["id"],
        {
            "street": street,
            "city": city,
            "state": state,
            "zip_code": zip_code,
            "number": number,
            "neighborhood": neighborhood,
            "phone": phone,
        },
        is_default=is_default,
    )
    return {"message": "Address created successfully", "address": AddressOut.model_validate(address)}


@router.put("/{address_id}")
def update_address(
    address_id: int,
    street: Optional[str] = Form(None, description="**Street**", examples=[""]),
    city: Optional[str] = Form(None, description="**City**", examples=[""]),
    state: Optional[str] = Form(None, description="**State**", examples=[""]),
    zip_code: Optional[str] = Form(None, description="**Zip code**", examples=[""]),
    phone: Optional[str] = Form(None, description="**Phone**", examples=[""]),
    is_default: Optional[bool] = Form(None, description="**Use as default address**"),
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    update_data = {
        "street": street,
        "city": city,
        "state": state,
        "zip_code": zip_code,
        "phone": phone,
    }
    update_data = {k: v for k, v in update_data.items() if v}

    address = crud.update_address(db, current_user["id"], address_id, update_data, is_default=is_default)
    if not address:
        raise HTTPException(status_code=404, detail="Address not found")
    return {"message": "Address updated successfully", "address": AddressOut.model_validate(address)}


@router.patch("/{address_id}/default")
def set_default_address(
    address_id: int,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    address = crud.set_default_address(db, current_user["id"], address_id)
    if not address:
        raise HTTPException(status_code=404, detail="Address not found")
    return {"message": "Default address updated", "address": AddressOut.model_validate(address)}


@router.delete("/{address_id}")
def delete_address(
    address_id: int,
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    address = crud.delete_address(db, current_user["id"], address_id)
    if not address:
        raise HTTPException(status_code=404, detail="Address not found")
    return {"message": "Address deleted successfully"}
