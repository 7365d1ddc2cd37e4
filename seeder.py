"""
Demo data for the storefront.

    python seeder.py       wipe orders, products and users, then import
    python seeder.py -d    wipe only
"""
import argparse
import os
import sys

import structlog

import database
from database import create_document
from logging_setup import configure_logging
from main import hash_password
from pricing import effective_original_price
from schemas import Product as ProductSchema, User as UserSchema

logger = structlog.get_logger(__name__)

ADMIN_NAME = os.getenv("ADMIN_NAME", "Admin")
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@shop.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")

DEMO_PRODUCTS = [
    {
        "name": "Classic Cotton Panjabi",
        "price": 1850,
        "original_price": 2200,
        "image_url": "https://images.unsplash.com/photo-1617137968427-85924c800a22",
        "category": "Panjabi",
        "description": "Breathable cotton panjabi with a mandarin collar.",
        "count_in_stock": 25,
        "colors": ["White", "Navy"],
        "sizes": ["M", "L", "XL"],
    },
    {
        "name": "Slim Fit Denim Jeans",
        "price": 1450,
        "image_url": "https://images.unsplash.com/photo-1542272604-787c3835535d",
        "category": "Jeans",
        "description": "Stretch denim with a tapered leg.",
        "count_in_stock": 40,
        "colors": ["Indigo", "Black"],
        "sizes": ["30", "32", "34", "36"],
    },
    {
        "name": "Printed Casual Shirt",
        "price": 990,
        "original_price": 1290,
        "image_url": "https://images.unsplash.com/photo-1596755094514-f87e34085b2c",
        "category": "Shirts",
        "description": "Short-sleeve viscose shirt with an all-over print.",
        "count_in_stock": 30,
        "colors": ["Olive", "Maroon"],
        "sizes": ["S", "M", "L"],
    },
    {
        "name": "Leather Belt",
        "price": 650,
        "image_url": "https://images.unsplash.com/photo-1553062407-98eeb64c6a62",
        "category": "Accessories",
        "description": "Full-grain leather belt with a brushed buckle.",
        "count_in_stock": 50,
        "colors": ["Brown"],
        "sizes": [],
    },
]


def destroy_data():
    db = database.db
    db["order"].delete_many({})
    db["product"].delete_many({})
    db["user"].delete_many({})
    logger.info("seed.destroyed")


def import_data():
    destroy_data()
    admin = UserSchema(name=ADMIN_NAME, email=ADMIN_EMAIL, password_hash=hash_password(ADMIN_PASSWORD), is_admin=True)
    create_document("user", admin)
    for p in DEMO_PRODUCTS:
        product = ProductSchema(**p)
        product.original_price = effective_original_price(product.price, product.original_price)
        create_document("product", product)
    logger.info("seed.imported", products=len(DEMO_PRODUCTS), admin_email=ADMIN_EMAIL)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Import or destroy storefront demo data")
    parser.add_argument("-d", "--destroy", action="store_true", help="only delete existing data")
    args = parser.parse_args(argv)

    configure_logging()
    if database.db is None:
        logger.error("seed.no_database")
        return 1
    if args.destroy:
        destroy_data()
    else:
        import_data()
    return 0


if __name__ == "__main__":
    sys.exit(main())
