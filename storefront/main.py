import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from . import config, crud
from .auth import get_password_hash
from .database import SessionLocal, close_db, init_db
from .errors import AuthError, StoreError
from .models import UserRole
from .routers import (
    address_router,
    auth_router,
    cart_router,
    category_router,
    contact_router,
    order_router,
    payment_router,
    product_router,
    upload_router,
    user_router,
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Emy-by Storefront API",
    description="Backend for the Emy-by storefront: catalogue, cart, checkout, orders and payments",
    version="1.0.0",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StoreError)
def _store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if type(exc) is AuthError else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(Exception)
def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "internal_error", "detail": "Internal server error"},
    )


# Include routers
for module in (
    auth_router,
    user_router,
    address_router,
    category_router,
    product_router,
    cart_router,
    order_router,
    payment_router,
    contact_router,
    upload_router,
):
    app.include_router(module.router, prefix="/api")

app.mount("/uploads", StaticFiles(directory=str(config.UPLOAD_DIR), check_dir=False), name="uploads")


def init_admin_user():
    db = SessionLocal()
    try:
        admin_user = crud.get_user_by_email(db, config.ADMIN_EMAIL)
        if not admin_user:
            crud.create_user(
                db,
                name="Admin",
                email=config.ADMIN_EMAIL,
                hashed_password=get_password_hash(config.ADMIN_PASSWORD),
                role=UserRole.ADMIN,
            )
            logger.info("Admin user %s created", config.ADMIN_EMAIL)
        elif admin_user.role != UserRole.ADMIN:
            admin_user.role = UserRole.ADMIN
            db.commit()
            logger.info("User %s promoted to admin", config.ADMIN_EMAIL)
    finally:
        db.close()


@app.on_event("startup")
def _startup() -> None:
    config.setup_logging()
    init_db()
    init_admin_user()


@app.on_event("shutdown")
def _shutdown() -> None:
    close_db()


@app.get("/api/health")
def health_check():
    return {
        "status": "healthy",
        "service": "storefront",
        "message": "Emy-by API is running!",
    }
