"""Populate an empty database with the store's categories and a few products.

Run with ``python -m storefront.seed``. Existing categories (matched by slug)
and products (matched by name) are left alone, so it is safe to re-run.
"""
import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from . import config, crud
from .database import SessionLocal, init_db
from .main import init_admin_user
from .models import Product

logger = logging.getLogger(__name__)

CATEGORIES = [
    ("Vestidos", "vestidos", "Vestidos elegantes e modernos"),
    ("Blusas", "blusas", "Blusas casuais e sociais"),
    ("Saias", "saias", "Saias longas e midi"),
    ("Calças", "calcas", "Calças jeans e sociais"),
    ("Sapatos", "sapatos", "Sapatos para todas as ocasiões"),
    ("Tênis", "tenis", "Tênis esportivos e casuais"),
    ("Sandálias", "sandalias", "Sandálias confortáveis"),
    ("Relógios", "relogios", "Relógios elegantes"),
]

CLOTHING_SIZES = ["P", "M", "G", "GG"]
SHOE_SIZES = ["35", "36", "37", "38", "39"]

PRODUCTS = [
    ("Vestido Floral Midi", "vestidos", "Vestido midi com estampa floral", "129.90", CLOTHING_SIZES),
    ("Blusa de Seda", "blusas", "Blusa de seda com gola laço", "89.90", CLOTHING_SIZES),
    ("Saia Plissada", "saias", "Saia midi plissada", "99.90", CLOTHING_SIZES),
    ("Calça Jeans Wide Leg", "calcas", "Calça jeans de cintura alta", "149.90", ["36", "38", "40", "42"]),
    ("Scarpin Nude", "sapatos", "Scarpin de salto médio", "179.90", SHOE_SIZES),
    ("Tênis Casual Branco", "tenis", "Tênis casual em couro sintético", "159.90", SHOE_SIZES),
    ("Sandália Rasteira", "sandalias", "Rasteira com tiras trançadas", "69.90", SHOE_SIZES),
    ("Relógio Dourado", "relogios", "Relógio analógico dourado", "249.90", ["Único"]),
]


def seed(db: Session, stock_per_variant: int = 10) -> None:
    for name, slug, description in CATEGORIES:
        if not crud.get_category_by_slug(db, slug):
            crud.create_category(db, name=name, slug=slug, description=description)

    for name, slug, description, price, sizes in PRODUCTS:
        if db.query(Product).filter(Product.name == name).first():
            continue
        category = crud.get_category_by_slug(db, slug)
        crud.create_product(
            db,
            {
                "name": name,
                "description": description,
                "price": Decimal(price),
                "category_id": category.id,
                "variants": [{"size": size, "stock": stock_per_variant} for size in sizes],
            },
        )
    logger.info("Seeded %d categories and %d products", len(CATEGORIES), len(PRODUCTS))


def main() -> None:
    config.setup_logging()
    init_db()
    db = SessionLocal()
    try:
        seed(db)
    finally:
        db.close()
    init_admin_user()


if __name__ == "__main__":
    main()
