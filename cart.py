"""
Cart aggregation.

A user owns at most one cart document. `item_count` and `total` are derived
from the lines and are recomputed from the full list after every mutation,
never patched incrementally.
"""

import logging

from pymongo.database import Database

from database import create_document, get_or_404, utcnow
from errors import NotFound
from schemas import DEFAULT_PRODUCT_IMAGE, Cart, CartItem

logger = logging.getLogger(__name__)


def recompute_totals(cart: dict) -> dict:
    items = cart.get("items", [])
    cart["item_count"] = sum(item["amount"] for item in items)
    cart["total"] = sum(item["price"] * item["amount"] for item in items)
    return cart


def empty_cart(user_id: str) -> dict:
    return {"items": [], "item_count": 0, "total": 0, "user_id": user_id}


def _save(db: Database, cart: dict) -> dict:
    db["cart"].update_one(
        {"_id": cart["_id"]},
        {"$set": {
            "items": cart["items"],
            "item_count": cart["item_count"],
            "total": cart["total"],
            "updated_at": utcnow(),
        }},
    )
    return cart


def _find_line(cart: dict, product_id: str) -> int:
    for index, item in enumerate(cart.get("items", [])):
        if item["product_id"] == product_id:
            return index
    return -1


def _cart_with_line(db: Database, user_id: str, product_id: str):
    cart = db["cart"].find_one({"user_id": user_id})
    if not cart:
        raise NotFound("No cart found for this user")
    index = _find_line(cart, product_id)
    if index < 0:
        raise NotFound(f"No item with product id {product_id} in cart")
    return cart, index


def get_cart(db: Database, user_id: str) -> dict:
    cart = db["cart"].find_one({"user_id": user_id})
    return cart if cart else empty_cart(user_id)


def add_item(db: Database, user_id: str, product_id: str, amount: int) -> dict:
    product = get_or_404(db, "product", product_id, "product")
    images = product.get("images") or [DEFAULT_PRODUCT_IMAGE]
    line = CartItem(
        name=product["name"],
        image=images[0],
        price=product["price"],
        amount=amount,
        product_id=product_id,
    ).model_dump()

    cart = db["cart"].find_one({"user_id": user_id})
    if not cart:
        new_cart = Cart(items=[line], item_count=amount, total=line["price"] * amount, user_id=user_id)
        create_document(db, "cart", new_cart)
        return db["cart"].find_one({"user_id": user_id})

    index = _find_line(cart, product_id)
    if index >= 0:
        cart["items"][index]["amount"] += amount
    else:
        cart["items"].append(line)
    recompute_totals(cart)
    return _save(db, cart)


def remove_item(db: Database, user_id: str, product_id: str) -> dict:
    cart, index = _cart_with_line(db, user_id, product_id)
    del cart["items"][index]
    recompute_totals(cart)
    return _save(db, cart)


def update_item_amount(db: Database, user_id: str, product_id: str, amount: int) -> dict:
    cart, index = _cart_with_line(db, user_id, product_id)
    if amount <= 0:
        del cart["items"][index]
    else:
        cart["items"][index]["amount"] = amount
    recompute_totals(cart)
    return _save(db, cart)


def clear(db: Database, user_id: str) -> None:
    result = db["cart"].update_one(
        {"user_id": user_id},
        {"$set": {"items": [], "item_count": 0, "total": 0, "updated_at": utcnow()}},
    )
    if result.matched_count == 0:
        logger.debug("No cart to clear for user %s", user_id)
