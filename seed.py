"""
Initial data: the first admin account and a sample catalog.

    python seed.py --admin-email admin@ecommerce.com --admin-password admin123456
"""

import argparse
from typing import Any, Dict, List, Optional

import structlog
from pymongo.database import Database

from config import configure_logging, get_settings
from database import CATEGORIES, PRODUCTS, USERS, create_document, connect, serialize_doc
from identity import IdentityProvider
from schemas import Category, Product, User

logger = structlog.get_logger(__name__)

SAMPLE_CATEGORIES = [
    {"id": "electronics", "name": "Electronics", "description": "Electronic devices and gadgets"},
    {"id": "clothing", "name": "Clothing", "description": "Fashion and apparel"},
    {"id": "books", "name": "Books", "description": "Books and literature"},
    {"id": "home-garden", "name": "Home & Garden", "description": "Home and garden supplies"},
]

SAMPLE_PRODUCTS = [
    {"name": "iPhone 15 Pro", "description": "Latest iPhone model with advanced features", "price": 999.99,
     "category": "electronics", "brand": "Apple", "stock": 50, "images": ["iphone15-pro.jpg"],
     "tags": ["phone", "ios"], "isFeatured": True},
    {"name": "Samsung Galaxy S24", "description": "Latest Samsung flagship smartphone", "price": 899.99,
     "category": "electronics", "brand": "Samsung", "stock": 30, "images": ["galaxy-s24.jpg"],
     "tags": ["phone", "android"]},
    {"name": "MacBook Air M3", "description": "Powerful laptop with M3 chip", "price": 1299.99,
     "category": "electronics", "brand": "Apple", "stock": 25, "images": ["macbook-air-m3.jpg"],
     "tags": ["laptop"], "isFeatured": True},
    {"name": "Premium Cotton T-Shirt", "description": "Comfortable cotton t-shirt for everyday wear",
     "price": 29.99, "category": "clothing", "brand": "ComfortWear", "stock": 100,
     "images": ["cotton-tshirt.jpg"], "tags": ["cotton", "shirt"]},
    {"name": "JavaScript: The Definitive Guide", "description": "Comprehensive guide to JavaScript programming",
     "price": 59.99, "category": "books", "brand": "O'Reilly", "stock": 20,
     "images": ["js-definitive-guide.jpg"], "tags": ["programming"]},
]


def create_admin(db: Database, identity: IdentityProvider, email: str, password: str,
                 first_name: str = "System", last_name: str = "Administrator") -> Dict[str, Any]:
    email = email.lower()
    existing = db[USERS].find_one({"email": email})
    if existing:
        logger.info("admin_exists", email=email)
        return serialize_doc(existing)
    user = User(
        first_name=first_name,
        last_name=last_name,
        email=email,
        password_hash=identity.hash_password(password),
        role="admin",
    )
    user_id = create_document(db, USERS, user)
    logger.info("admin_created", email=email, user_id=user_id)
    return serialize_doc(db[USERS].find_one({"email": email}))


def setup_database(db: Database, categories: Optional[List[Dict[str, Any]]] = None,
                   products: Optional[List[Dict[str, Any]]] = None) -> Dict[str, int]:
    created = {"categories": 0, "products": 0}
    for entry in categories if categories is not None else SAMPLE_CATEGORIES:
        if db[CATEGORIES].find_one({"_id": entry["id"]}):
            continue
        doc = Category(**entry).model_dump(mode="json", by_alias=True)
        doc["_id"] = entry["id"]
        create_document(db, CATEGORIES, doc)
        created["categories"] += 1
    for entry in products if products is not None else SAMPLE_PRODUCTS:
        if db[PRODUCTS].find_one({"name": entry["name"]}):
            continue
        create_document(db, PRODUCTS, Product(**entry))
        created["products"] += 1
    logger.info("database_seeded", **created)
    return created


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Seed the storefront database")
    parser.add_argument("--admin-email", default="admin@ecommerce.com")
    parser.add_argument("--admin-password", default=None)
    parser.add_argument("--skip-catalog", action="store_true")
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings)
    db = connect(settings)
    if args.admin_password:
        create_admin(db, IdentityProvider.from_settings(settings), args.admin_email, args.admin_password)
    if not args.skip_catalog:
        setup_database(db)


if __name__ == "__main__":
    main()
