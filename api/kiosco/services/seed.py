import logging

from sqlalchemy import text
from sqlalchemy.orm import Session

from kiosco.schemas.catalog import ProductInput
from kiosco.services.catalog import create_product

logger = logging.getLogger(__name__)

DEMO_PRODUCTS = [
    {"name": "Coca Cola 500ml", "price": 1800, "stock": 12},
    {"name": "Papas Clasicas 100g", "price": 2200, "stock": 7},
    {"name": "Chocolate Barra", "price": 1500, "stock": 3},
    {"name": "Agua Sin Gas 600ml", "price": 1200, "stock": 15},
    {"name": "Galletas Vainilla", "price": 2000, "stock": 2},
    {"name": "Caramelos Menta x10", "price": 1000, "stock": 20},
]


def seed_demo_products(db: Session) -> int:
    """Insert the demo catalog into an empty products table."""
    count = db.execute(text("SELECT COUNT(*) FROM products")).scalar_one()
    if count > 0:
        return 0

    for item in DEMO_PRODUCTS:
        create_product(db, ProductInput(**item))

    logger.info("demo catalog seeded", extra={"products_created": len(DEMO_PRODUCTS)})
    return len(DEMO_PRODUCTS)
