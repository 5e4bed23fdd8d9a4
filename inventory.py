"""
Inventory consistency

Stock levels live in the ``inventory`` block of products and variants. Every
quantity change goes through ``set_quantity`` so the stock status is derived
the same way everywhere and an ``inventory_log`` entry is appended.
"""
import logging
from typing import Dict, List, Optional

from database import create_document, now, paginate, serialize, to_object_id
from errors import NotFound, ValidationFailure

logger = logging.getLogger(__name__)


def determine_status(quantity: int, low_stock_threshold: int, managed: bool = True,
                     current: Optional[str] = None) -> str:
    if current == "discontinued":
        return "discontinued"
    if not managed:
        return current or "in_stock"
    if quantity <= 0:
        return "out_of_stock"
    if quantity <= low_stock_threshold:
        return "low_stock"
    return "in_stock"


def normalize_inventory(inventory: dict, default_threshold: int = 5) -> dict:
    inv = dict(inventory)
    inv.setdefault("low_stock_threshold", default_threshold)
    inv["status"] = determine_status(
        inv.get("quantity", 0), inv["low_stock_threshold"], inv.get("managed", True), inv.get("status"))
    return inv


def log_inventory_change(db, product_id: str, previous_quantity: int, new_quantity: int, reason: str,
                         order_id: Optional[str] = None, admin: Optional[dict] = None,
                         variant_id: Optional[str] = None, product_name: Optional[str] = None,
                         details: Optional[str] = None) -> str:
    entry = {
        "product_id": product_id,
        "variant_id": variant_id,
        "product_name": product_name,
        "previous_quantity": previous_quantity,
        "new_quantity": new_quantity,
        "reason": reason,
        "order_id": order_id,
        "user_id": admin.get("id") if admin else None,
        "admin_name": admin.get("username") if admin else None,
        "details": details,
        "timestamp": now(),
    }
    return create_document(db, "inventory_log", entry)


def set_quantity(db, collection: str, doc: dict, new_quantity: int, reason: str,
                 admin: Optional[dict] = None, order_id: Optional[str] = None,
                 details: Optional[str] = None) -> dict:
    """Write a new absolute quantity on a product or variant and log the delta."""
    if new_quantity < 0:
        raise ValidationFailure("Quantity cannot be negative")
    inv = dict(doc.get("inventory") or {})
    previous = inv.get("quantity", 0)
    inv["quantity"] = new_quantity
    inv = normalize_inventory(inv)
    db[collection].update_one({"_id": doc["_id"]}, {"$set": {"inventory": inv, "updated_at": now()}})

    if collection == "product_variant":
        product_id, variant_id = doc["product_id"], str(doc["_id"])
        parent = db["product"].find_one({"_id": to_object_id(product_id)}) or {}
        name = parent.get("name")
    else:
        product_id, variant_id, name = str(doc["_id"]), None, doc.get("name")
    log_inventory_change(db, product_id, previous, new_quantity, reason, order_id=order_id,
                         admin=admin, variant_id=variant_id, product_name=name, details=details)
    logger.info("Inventory %s %s: %s -> %s (%s)", collection, doc["_id"], previous, new_quantity, reason)
    return {**doc, "inventory": inv}


def adjust_inventory(db, product_id: str, quantity: int, reason: str, admin: dict,
                     variant_id: Optional[str] = None, details: Optional[str] = None) -> dict:
    oid = to_object_id(product_id)
    product = db["product"].find_one({"_id": oid}) if oid else None
    if not product:
        raise NotFound("Product not found")
    if variant_id:
        voi = to_object_id(variant_id)
        variant = db["product_variant"].find_one({"_id": voi, "product_id": product_id}) if voi else None
        if not variant:
            raise NotFound("Variant not found")
        return set_quantity(db, "product_variant", variant, quantity, reason, admin=admin, details=details)
    return set_quantity(db, "product", product, quantity, reason, admin=admin, details=details)


def _find_stock_holder(db, item_id: Optional[str]):
    oid = to_object_id(item_id)
    if not oid:
        return None, None
    product = db["product"].find_one({"_id": oid})
    if product:
        return "product", product
    variant = db["product_variant"].find_one({"_id": oid})
    if variant:
        return "product_variant", variant
    return None, None


def decrement_for_order(db, order_id: str, items: List[dict], admin: Optional[dict] = None) -> List[Dict]:
    """Take the ordered quantities out of stock, flooring at zero.

    Items whose product is gone or whose inventory is not managed are skipped.
    Each applied line is marked ``stock_applied`` so a retry after a partial
    failure only touches the remaining lines.
    """
    results = []
    for item in items:
        if item.get("stock_applied"):
            results.append({"productId": item.get("product_id"), "success": True})
            continue
        collection, doc = _find_stock_holder(db, item.get("product_id"))
        inv = (doc or {}).get("inventory") or {}
        if not doc or not inv.get("managed", True):
            results.append({"productId": item.get("product_id"), "success": False,
                            "error": "Product not found or inventory not managed"})
            continue
        current = inv.get("quantity", 0)
        set_quantity(db, collection, doc, max(0, current - item["quantity"]), "order",
                     admin=admin, order_id=order_id)
        if item.get("_id") is not None:
            db["order_item"].update_one({"_id": item["_id"]}, {"$set": {"stock_applied": True}})
        results.append({"productId": item.get("product_id"), "success": True})
    return results


def log_to_api(log: dict) -> dict:
    return {
        "id": log["id"],
        "productId": log.get("product_id"),
        "variantId": log.get("variant_id"),
        "productName": log.get("product_name"),
        "previousQuantity": log.get("previous_quantity"),
        "newQuantity": log.get("new_quantity"),
        "reason": log.get("reason"),
        "orderId": log.get("order_id"),
        "userId": log.get("user_id"),
        "adminName": log.get("admin_name"),
        "details": log.get("details"),
        "timestamp": log.get("timestamp"),
    }


def get_inventory_logs(db, product_id: Optional[str] = None, reason: Optional[str] = None,
                       page: int = 1, limit: int = 50) -> dict:
    query: Dict = {}
    if product_id:
        query["product_id"] = product_id
    if reason:
        query["reason"] = reason
    docs, pagination = paginate(db, "inventory_log", query, page, limit,
                                sort=[("timestamp", -1), ("_id", -1)])
    return {"logs": [log_to_api(serialize(d)) for d in docs], "pagination": pagination}
