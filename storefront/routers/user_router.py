from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import crud
from ..auth import get_current_admin, get_password_hash
from ..database import get_db
from ..schemas import AdminUserCreate, AdminUserUpdate, UserDetail, UserOut, UserStats

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/")
def list_all_users(
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """
    Get list of all users (Admin only)
    """
    users = crud.get_users(db)
    return {"users": [UserOut.model_validate(u) for u in users]}


@router.get("/stats/overview")
def user_stats(
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    return {"stats": UserStats(**crud.get_user_stats(db))}


@router.post("/", status_code=status.HTTP_201_CREATED)
def create_user_by_admin(
    body: AdminUserCreate,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    user = crud.create_user(
        db,
        name=body.name,
        email=body.email,
        hashed_password=get_password_hash(body.password),
        phone=body.phone,
        role=body.role,
        address=body.address.model_dump() if body.address else None,
    )
    return {"message": "User created successfully", "user": UserDetail.model_validate(user)}


@router.get("/{user_id}")
def get_user_by_admin(
    user_id: int,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    user = crud.get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return {"user": UserDetail.model_validate(user)}


@router.put("/{user_id}")
def update_user_by_admin(
    user_id: int,
    body: AdminUserUpdate,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    update_data = body.model_dump(exclude_unset=True)
    if update_data.get("address"):
        update_data["address"] = body.address.model_dump()
    user = crud.update_user(db, user_id, update_data)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return {"user": UserDetail.model_validate(user)}


@router.delete("/{user_id}")
def delete_user_by_admin(
    user_id: int,
    current_admin: Dict = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """
    Delete a user by ID (Admin only)
    """
    if user_id == current_admin["id"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete your own account",
        )

    user = crud.delete_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "User deleted successfully"}
