"""
Sample data loader.

    python seed.py        ensure an admin and a category, then insert 50 sample products
    python seed.py -d     delete the sample products
"""

import argparse
import logging
import os
import random

from dotenv import load_dotenv
from pymongo.database import Database

from auth import hash_password
from database import connect, create_document, ensure_indexes
from schemas import Category, Product, User

logger = logging.getLogger("seed")

SAMPLE_PREFIX = "Seeder Product"
COMPANIES = ["ikea", "liddy", "marcos"]


def import_data(db: Database, count: int = 50) -> int:
    admin = db["user"].find_one({"role": "admin"})
    if not admin:
        logger.info("No admin user found. Creating one...")
        create_document(db, "user", User(
            name="Seeder Admin",
            email=os.getenv("SEED_ADMIN_EMAIL", "admin@seeder.com"),
            password_hash=hash_password(os.getenv("SEED_ADMIN_PASSWORD", "password123")),
            role="admin",
        ))
        admin = db["user"].find_one({"role": "admin"})
    admin_id = str(admin["_id"])
    logger.info("Using user: %s", admin["email"])

    category = db["category"].find_one({"name": "Seeder Category"})
    if not category:
        logger.info("No category found. Creating one...")
        create_document(db, "category", Category(name="Seeder Category", user_id=admin_id))
        category = db["category"].find_one({"name": "Seeder Category"})
    logger.info("Using category: %s", category["name"])

    for i in range(1, count + 1):
        create_document(db, "product", Product(
            name=f"{SAMPLE_PREFIX} {i}",
            price=random.randint(10, 1009),
            description=f"This is a description for seeder product {i}. It is a great product.",
            category_id=str(category["_id"]),
            company=random.choice(COMPANIES),
            colors=["#000000", "#FFFFFF"],
            inventory=random.randint(0, 99),
            featured=random.random() > 0.8,
            user_id=admin_id,
        ))
    logger.info("Data imported: %d products", count)
    return count


def delete_data(db: Database) -> int:
    result = db["product"].delete_many({"name": {"$regex": f"^{SAMPLE_PREFIX}"}})
    logger.info("Seeder data destroyed: %d products", result.deleted_count)
    return result.deleted_count


def main(argv=None):
    parser = argparse.ArgumentParser(description="Load or remove sample catalog data")
    parser.add_argument("-d", "--delete", action="store_true", help="delete the sample products")
    args = parser.parse_args(argv)

    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    db = connect()
    ensure_indexes(db)
    if args.delete:
        delete_data(db)
    else:
        import_data(db)


if __name__ == "__main__":
    main()
