"""
Order materialization: turns the caller's cart into an immutable order.
"""

import copy
import logging

from pymongo.database import Database
from pymongo.errors import PyMongoError

import cart as carts
from auth import is_admin
from database import create_document, get_or_404, oid, utcnow
from errors import Forbidden, InvalidState
from schemas import Order, OrderUpdate

logger = logging.getLogger(__name__)

# Flat amounts, not rates: tax is added as 0.1, not subtotal * 0.1.
TAX = 0.1
SHIPPING_FEE = 200
PAYMENT_PLACEHOLDER = "pending"


def create_order(db: Database, user_id: str) -> dict:
    cart = db["cart"].find_one({"user_id": user_id})
    if not cart or len(cart.get("items", [])) < 1:
        raise InvalidState("No cart items found")

    subtotal = cart["total"]
    total = subtotal + TAX + SHIPPING_FEE
    order = Order(
        items=copy.deepcopy(cart["items"]),
        subtotal=subtotal,
        tax=TAX,
        shipping_fee=SHIPPING_FEE,
        total=total,
        user_id=user_id,
        client_secret=PAYMENT_PLACEHOLDER,
    )
    order_id = create_document(db, "order", order)
    logger.info("Created order %s for user %s (total %.2f)", order_id, user_id, total)

    try:
        carts.clear(db, user_id)
    except PyMongoError:
        # The order is already persisted; leave it and flag the stale cart for reconciliation.
        logger.exception("Order %s created but cart for user %s was not cleared", order_id, user_id)

    return db["order"].find_one({"_id": oid(order_id)})


def update_order(db: Database, order_id: str, patch: OrderUpdate) -> dict:
    order = get_or_404(db, "order", order_id, "order")
    changes = {}
    now = utcnow()
    if patch.payment_intent_id:
        changes["payment_intent_id"] = patch.payment_intent_id
        changes["is_paid"] = True
        changes["paid_at"] = now
    if patch.status:
        changes["status"] = patch.status
        if patch.status == "delivered":
            changes["is_delivered"] = True
            changes["delivered_at"] = now
    if changes:
        changes["updated_at"] = now
        db["order"].update_one({"_id": order["_id"]}, {"$set": changes})
        order.update(changes)
    return order


def get_single_order(db: Database, order_id: str, requester: dict) -> dict:
    order = get_or_404(db, "order", order_id, "order")
    if not is_admin(requester) and order["user_id"] != str(requester["_id"]):
        raise Forbidden("Not authorized to access this order")
    return order


def list_user_orders(db: Database, user_id: str) -> list:
    return list(db["order"].find({"user_id": user_id}).sort("created_at", -1))


def list_all_orders(db: Database) -> list:
    return list(db["order"].find({}).sort("created_at", -1))
