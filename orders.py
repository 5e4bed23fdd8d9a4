"""
Checkout and order workflow

Checkout turns the cookie cart into an ``order`` header plus one
``order_item`` per line. Line items snapshot name, price and quantity, so an
order stays readable after the product changes or disappears.

Status transitions::

    pending    -> processing | completed | cancelled
    processing -> completed | cancelled | refunded
    completed  -> refunded

Stock is taken out when an order first reaches ``completed``; the
``inventory_updated`` flag is flipped in the same write as the status so a
retried request cannot decrement twice. Line items already taken out of stock
carry ``stock_applied`` and are skipped when a failed decrement is retried.
"""
import logging
import secrets
import string
from typing import Dict, List, Optional

from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from database import create_document, now, paginate, serialize, to_object_id
from errors import NotFound, PersistenceFailure, ValidationFailure
from inventory import decrement_for_order
from schemas import CheckoutRequest

logger = logging.getLogger(__name__)

ORDER_STATUSES = ("pending", "processing", "completed", "cancelled", "refunded")
ALLOWED_TRANSITIONS = {
    "pending": {"processing", "completed", "cancelled"},
    "processing": {"completed", "cancelled", "refunded"},
    "completed": {"refunded"},
    "cancelled": set(),
    "refunded": set(),
}

_REF_ALPHABET = string.ascii_uppercase + string.digits


def generate_order_number() -> str:
    """Human-readable reference such as ``ORD-7K2Q9XAB-M3PZ1C``."""
    first = "".join(secrets.choice(_REF_ALPHABET) for _ in range(8))
    second = "".join(secrets.choice(_REF_ALPHABET) for _ in range(6))
    return f"ORD-{first}-{second}"


def to_cents(amount: float) -> int:
    return int(round(float(amount) * 100))


def cart_total(items: List[dict]) -> float:
    return sum(to_cents(i["price"]) * i["quantity"] for i in items) / 100


def item_to_api(item: dict) -> dict:
    return {
        "id": item.get("product_id"),
        "name": item.get("name"),
        "price": item.get("price"),
        "quantity": item.get("quantity"),
        "image": item.get("image"),
    }


def order_to_api(order: dict, items: List[dict]) -> dict:
    customer = order.get("customer") or {}
    return {
        "id": order["id"],
        "orderNumber": order.get("order_number"),
        "items": [item_to_api(i) for i in items],
        "total": order.get("total"),
        "customerInfo": {
            "name": customer.get("name"),
            "email": customer.get("email"),
            "address": customer.get("address"),
        },
        "status": order.get("status"),
        "inventoryUpdated": order.get("inventory_updated", False),
        "createdAt": order.get("created_at"),
        "updatedAt": order.get("updated_at"),
    }


def checkout(db, cart_items: List[dict], body: CheckoutRequest) -> dict:
    if not cart_items:
        raise ValidationFailure("Cart is empty")
    name = (body.name or "").strip()
    email = (body.email or "").strip()
    address = (body.address or "").strip()
    if not name or not email or not address:
        raise ValidationFailure("Missing customer information")

    order = {
        "order_number": generate_order_number(),
        "total": cart_total(cart_items),
        "customer": {"name": name, "email": email, "address": address},
        "status": "pending",
        "inventory_updated": False,
    }
    line_items = [
        {
            "product_id": i["id"],
            "name": i["name"],
            "price": i["price"],
            "quantity": i["quantity"],
            "image": i.get("image"),
        }
        for i in cart_items
    ]

    order_id = None
    try:
        order_id = create_document(db, "order", order)
        for line in line_items:
            line["order_id"] = order_id
            create_document(db, "order_item", line)
    except PyMongoError:
        logger.exception("Checkout failed while writing order %s", order["order_number"])
        if order_id:
            _discard_partial_order(db, order_id)
        raise PersistenceFailure("Failed to process checkout")

    logger.info("Order %s created (%s, total %.2f)", order["order_number"], order_id, order["total"])
    return get_order(db, order_id)


def _discard_partial_order(db, order_id: str):
    try:
        db["order_item"].delete_many({"order_id": order_id})
        db["order"].delete_one({"_id": to_object_id(order_id)})
    except PyMongoError:
        logger.exception("Could not roll back partial order %s", order_id)


def _items_for(db, order_ids: List[str]) -> Dict[str, List[dict]]:
    grouped: Dict[str, List[dict]] = {oid: [] for oid in order_ids}
    for item in db["order_item"].find({"order_id": {"$in": order_ids}}).sort([("_id", 1)]):
        grouped.setdefault(item["order_id"], []).append(item)
    return grouped


def _get_order_doc(db, order_id: str) -> dict:
    oid = to_object_id(order_id)
    doc = db["order"].find_one({"_id": oid}) if oid else db["order"].find_one({"order_number": order_id})
    if not doc:
        raise NotFound("Order not found")
    return doc


def list_orders(db, page: int = 1, limit: int = 20, status: Optional[str] = None) -> dict:
    if status and status not in ORDER_STATUSES:
        raise ValidationFailure("Invalid status")
    query = {"status": status} if status else {}
    docs, pagination = paginate(db, "order", query, page, limit, sort=[("created_at", -1), ("_id", -1)])
    orders = [serialize(d) for d in docs]
    items = _items_for(db, [o["id"] for o in orders])
    return {"orders": [order_to_api(o, items.get(o["id"], [])) for o in orders], "pagination": pagination}


def get_order(db, order_id: str) -> dict:
    order = serialize(_get_order_doc(db, order_id))
    return order_to_api(order, _items_for(db, [order["id"]])[order["id"]])


def update_order_status(db, order_id: str, status: Optional[str], admin: dict) -> dict:
    if not status:
        raise ValidationFailure("Status is required")
    if status not in ORDER_STATUSES:
        raise ValidationFailure("Invalid status")
    doc = _get_order_doc(db, order_id)
    order_id = str(doc["_id"])
    current = doc.get("status", "pending")
    pending_stock = status == "completed" and not doc.get("inventory_updated", False)

    if status == current and not pending_stock:
        return get_order(db, order_id)
    if status != current and status not in ALLOWED_TRANSITIONS.get(current, set()):
        raise ValidationFailure(f"Cannot change order status from {current} to {status}")

    changes = {"status": status, "updated_at": now()}
    if status == "completed":
        changes["inventory_updated"] = True
    before = db["order"].find_one_and_update(
        {"_id": doc["_id"], "status": current, "inventory_updated": doc.get("inventory_updated", False)},
        {"$set": changes},
        return_document=ReturnDocument.BEFORE,
    )
    if before is None:
        raise ValidationFailure("Order was modified by another request")

    if pending_stock:
        items = list(db["order_item"].find({"order_id": order_id}).sort([("_id", 1)]))
        try:
            results = decrement_for_order(db, order_id, items, admin)
        except PyMongoError:
            logger.exception("Inventory update failed for order %s", order_id)
            db["order"].update_one({"_id": doc["_id"]}, {"$set": {"inventory_updated": False}})
            raise PersistenceFailure("Failed to update inventory")
        skipped = [r["productId"] for r in results if not r["success"]]
        if skipped:
            logger.warning("Order %s: stock not adjusted for %s", order_id, skipped)

    logger.info("Order %s: %s -> %s by %s", order_id, current, status, admin.get("username"))
    return get_order(db, order_id)
