"""
Customer-facing catalog.

Listings never include discontinued or out-of-stock products. A single
product lookup hides discontinued products only, so sold-out pages still
render.
"""
import logging
import re
from typing import Optional

from database import get_documents, paginate, serialize, to_object_id
from errors import NotFound, ValidationFailure

logger = logging.getLogger(__name__)

HIDDEN_FROM_LISTING = ["discontinued", "out_of_stock"]
NOT_PURCHASABLE = {"discontinued", "out_of_stock"}
MAX_PAGE_SIZE = 100


def public_product(p: dict) -> dict:
    inv = p.get("inventory") or {}
    return {
        "id": p["id"],
        "name": p.get("name"),
        "description": p.get("description") or "",
        "price": p.get("price"),
        "compareAtPrice": p.get("compare_at_price"),
        "images": p.get("images") or [],
        "category": p.get("category") or "",
        "subcategory": p.get("subcategory"),
        "tags": p.get("tags") or [],
        "sku": p.get("sku"),
        "featured": p.get("featured", False),
        "inventory": {"quantity": inv.get("quantity", 0), "status": inv.get("status", "in_stock")},
    }


def public_variant(v: dict, parent: dict) -> dict:
    inv = v.get("inventory") or {}
    return {
        "id": v["id"],
        "sku": v.get("sku"),
        "price": v["price"] if v.get("price") is not None else parent.get("price"),
        "compareAtPrice": v.get("compare_at_price"),
        "attributes": v.get("attributes") or {},
        "images": v.get("images") or [],
        "inventory": {"quantity": inv.get("quantity", 0), "status": inv.get("status", "in_stock")},
    }


def list_products(db, page: int = 1, limit: int = 10, category: Optional[str] = None,
                  search: Optional[str] = None, featured_only: bool = False) -> dict:
    if page < 1 or limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationFailure("Invalid pagination parameters")
    query: dict = {"inventory.status": {"$nin": HIDDEN_FROM_LISTING}}
    if category:
        query["category"] = category
    if search:
        pattern = re.escape(search)
        query["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}},
        ]
    if featured_only:
        query["featured"] = True
    docs, pagination = paginate(db, "product", query, page, limit, sort=[("name", 1), ("_id", 1)])
    return {"products": [public_product(serialize(d)) for d in docs], "pagination": pagination}


def get_product(db, product_id: str) -> dict:
    oid = to_object_id(product_id)
    doc = db["product"].find_one({"_id": oid}) if oid else None
    if not doc or (doc.get("inventory") or {}).get("status") == "discontinued":
        raise NotFound("Product not found")
    product = serialize(doc)
    data = public_product(product)
    if product.get("has_variants"):
        variants = get_documents(db, "product_variant",
                                 {"product_id": product["id"], "inventory.status": {"$ne": "discontinued"}},
                                 sort=[("created_at", 1)])
        data["variants"] = [public_variant(serialize(v), product) for v in variants]
    return data


def find_purchasable(db, item_id: str) -> dict:
    """Resolve a product or variant id into a cart line snapshot.

    Raises NotFound for unknown or discontinued items and ValidationFailure
    for items that cannot currently be bought.
    """
    oid = to_object_id(item_id)
    if not oid:
        raise NotFound("Product not found")
    product = db["product"].find_one({"_id": oid})
    variant = None
    if not product:
        variant = db["product_variant"].find_one({"_id": oid})
        if variant:
            product = db["product"].find_one({"_id": to_object_id(variant["product_id"])})
    if not product:
        raise NotFound("Product not found")
    holder = variant or product
    product_status = (product.get("inventory") or {}).get("status")
    status = (holder.get("inventory") or {}).get("status")
    if product_status == "discontinued" or status == "discontinued":
        raise NotFound("Product not found")
    if status in NOT_PURCHASABLE:
        raise ValidationFailure("Product is out of stock")

    name = product.get("name")
    if variant and variant.get("attributes"):
        name = f"{name} ({', '.join(str(v) for v in variant['attributes'].values())})"
    images = (variant or {}).get("images") or product.get("images") or []
    price = variant.get("price") if variant and variant.get("price") is not None else product.get("price")
    return {"id": str(holder["_id"]), "name": name, "price": price, "image": images[0] if images else None}
