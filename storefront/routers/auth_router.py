from typing import Dict, Optional

from fastapi import APIRouter, Depends, Form, HTTPException, status
from sqlalchemy.orm import Session

from .. import crud
from ..auth import create_access_token, get_current_user, get_password_hash, verify_password
from ..database import get_db
from ..errors import AuthError, ValidationError
from ..schemas import LoginResponse, UserOut, parse_email

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    name: str = Form(..., description="**Full name**", examples=[""]),
    email: str = Form(..., description="**Valid email address**", examples=[""]),
    password: str = Form(..., description="**Password (6 to 72 bytes)**", examples=[""]),
    phone: Optional[str] = Form(None, description="**Phone** (optional)", examples=[""]),
    db: Session = Depends(get_db),
):
    if not name.strip() or not email.strip() or not password:
        raise ValidationError("Name, email and password are required")
    # Must agree with the EmailStr used when the user is read back
    valid_email = parse_email(email)
    if not valid_email:
        raise ValidationError("Invalid email format")
    # bcrypt only looks at the first 72 bytes
    if len(password) < 6 or len(password.encode("utf-8")) > 72:
        raise ValidationError("Password must be between 6 and 72 bytes")

    user = crud.create_user(
        db,
        name=name.strip(),
        email=valid_email,
        hashed_password=get_password_hash(password),
        phone=phone,
    )
    return {"message": "User created successfully", "user": UserOut.model_validate(user)}


@router.post("/login", response_model=LoginResponse)
def login(
    email: str = Form(..., description="**Email used at registration**", examples=[""]),
    password: str = Form(..., description="**Password**", examples=[""]),
    db: Session = Depends(get_db),
):
    user = crud.get_user_by_email(db, email)
    if not user or not verify_password(password, user.hashed_password):
        raise AuthError("Incorrect email or password")

    return {
        "message": "Login successful",
        "user": UserOut.model_validate(user),
        "token": create_access_token(user),
    }


@router.get("/profile", response_model=UserOut)
@router.get("/me", response_model=UserOut)
def read_profile(
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user = crud.get_user(db, current_user["id"])
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.put("/profile")
def update_profile(
    name: str = Form(..., description="**New name**", examples=[""]),
    phone: Optional[str] = Form(None, description="**New phone** (optional)", examples=[""]),
    current_user: Dict = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not name.strip():
        raise ValidationError("Name is required")

    user = crud.update_user(db, current_user["id"], {"name": name.strip(), "phone": phone})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "Profile updated successfully", "user": UserOut.model_validate(user)}
