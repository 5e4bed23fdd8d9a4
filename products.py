"""
Admin product and variant management, including SKU uniqueness.
"""
import logging
import re
from typing import Optional

from database import create_document, get_documents, now, paginate, serialize, to_object_id
from errors import NotFound, ValidationFailure
from inventory import log_inventory_change, normalize_inventory
from schemas import ProductCreate, ProductUpdate, VariantCreate, VariantUpdate

logger = logging.getLogger(__name__)


def inventory_to_api(inv: Optional[dict]) -> dict:
    inv = inv or {}
    return {
        "quantity": inv.get("quantity", 0),
        "lowStockThreshold": inv.get("low_stock_threshold"),
        "status": inv.get("status", "in_stock"),
        "managed": inv.get("managed", True),
    }


def variant_to_api(v: dict) -> dict:
    return {
        "id": v["id"],
        "productId": v.get("product_id"),
        "sku": v.get("sku"),
        "price": v.get("price"),
        "compareAtPrice": v.get("compare_at_price"),
        "inventory": inventory_to_api(v.get("inventory")),
        "attributes": v.get("attributes") or {},
        "barcode": v.get("barcode"),
        "images": v.get("images") or [],
        "createdAt": v.get("created_at"),
        "updatedAt": v.get("updated_at"),
    }


def product_to_api(p: dict, variants: Optional[list] = None) -> dict:
    data = {
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
        "barcode": p.get("barcode"),
        "featured": p.get("featured", False),
        "inventory": inventory_to_api(p.get("inventory")),
        "attributes": p.get("attributes") or {},
        "hasVariants": p.get("has_variants", False),
        "variantAttributes": p.get("variant_attributes") or [],
        "createdAt": p.get("created_at"),
        "updatedAt": p.get("updated_at"),
    }
    if variants is not None:
        data["variants"] = [variant_to_api(v) for v in variants]
    return data


def variants_of(db, product_id: str) -> list:
    return [serialize(v) for v in get_documents(db, "product_variant", {"product_id": product_id},
                                                sort=[("created_at", 1)])]


# SKU uniqueness
def is_sku_unique(db, sku: str, exclude_id: Optional[str] = None) -> bool:
    """True when neither a product nor a variant (other than ``exclude_id``) holds ``sku``.

    Discontinued products keep their SKU reserved.
    """
    query = {"sku": sku}
    oid = to_object_id(exclude_id)
    if oid:
        query["_id"] = {"$ne": oid}
    if db["product"].find_one(query, {"_id": 1}):
        return False
    return db["product_variant"].find_one(query, {"_id": 1}) is None


def _require_unique_sku(db, sku: str, exclude_id: Optional[str] = None):
    if not sku or not sku.strip():
        raise ValidationFailure("SKU is required")
    if not is_sku_unique(db, sku, exclude_id):
        raise ValidationFailure("SKU already exists")


def _get_product_doc(db, product_id: str) -> dict:
    oid = to_object_id(product_id)
    doc = db["product"].find_one({"_id": oid}) if oid else None
    if not doc:
        raise NotFound("Product not found")
    return doc


# Products
def list_products(db, page: int = 1, limit: int = 20, status: Optional[str] = None,
                  search: Optional[str] = None) -> dict:
    query: dict = {}
    if status:
        query["inventory.status"] = status
    if search:
        pattern = re.escape(search)
        query["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"sku": {"$regex": pattern, "$options": "i"}},
        ]
    docs, pagination = paginate(db, "product", query, page, limit, sort=[("updated_at", -1)])
    return {"products": [product_to_api(serialize(d)) for d in docs], "pagination": pagination}


def get_product(db, product_id: str) -> dict:
    doc = serialize(_get_product_doc(db, product_id))
    return product_to_api(doc, variants_of(db, doc["id"]))


def create_product(db, body: ProductCreate, admin: dict) -> dict:
    _require_unique_sku(db, body.sku)
    doc = body.model_dump()
    doc["inventory"] = normalize_inventory(doc["inventory"])
    doc["has_variants"] = False
    product_id = create_document(db, "product", doc)
    log_inventory_change(db, product_id, 0, doc["inventory"]["quantity"], "product_created",
                         admin=admin, product_name=doc["name"])
    logger.info("Product %s (%s) created by %s", product_id, doc["sku"], admin.get("username"))
    return get_product(db, product_id)


def update_product(db, product_id: str, body: ProductUpdate, admin: dict) -> dict:
    existing = _get_product_doc(db, product_id)
    product_id = str(existing["_id"])
    update = body.model_dump(exclude_none=True)
    if "sku" in update:
        update["sku"] = update["sku"].strip()
        if update["sku"] != existing.get("sku"):
            _require_unique_sku(db, update["sku"], product_id)
    if "inventory" in update:
        update["inventory"] = normalize_inventory(update["inventory"])
    update["updated_at"] = now()
    db["product"].update_one({"_id": existing["_id"]}, {"$set": update})

    previous_qty = (existing.get("inventory") or {}).get("quantity", 0)
    new_qty = update.get("inventory", {}).get("quantity", previous_qty)
    if new_qty != previous_qty:
        log_inventory_change(db, product_id, previous_qty, new_qty, "product_updated",
                             admin=admin, product_name=update.get("name", existing.get("name")))
    return get_product(db, product_id)


def delete_product(db, product_id: str, admin: dict):
    existing = _get_product_doc(db, product_id)
    product_id = str(existing["_id"])
    if db["order_item"].find_one({"product_id": product_id}):
        raise ValidationFailure("Cannot delete product that is used in orders")
    variant_ids = [str(v["_id"]) for v in db["product_variant"].find({"product_id": product_id}, {"_id": 1})]
    if db["order_item"].find_one({"product_id": {"$in": variant_ids}}):
        raise ValidationFailure("Cannot delete product that is used in orders")
    previous_qty = (existing.get("inventory") or {}).get("quantity", 0)
    log_inventory_change(db, product_id, previous_qty, 0, "product_deleted",
                         admin=admin, product_name=existing.get("name"))
    db["product_variant"].delete_many({"product_id": product_id})
    db["product"].delete_one({"_id": existing["_id"]})
    logger.info("Product %s deleted by %s", product_id, admin.get("username"))


# Variants
def _get_variant_doc(db, variant_id: str) -> dict:
    oid = to_object_id(variant_id)
    doc = db["product_variant"].find_one({"_id": oid}) if oid else None
    if not doc:
        raise NotFound("Variant not found")
    return doc


def create_variant(db, product_id: str, body: VariantCreate, admin: dict) -> dict:
    product = _get_product_doc(db, product_id)
    product_id = str(product["_id"])
    sku = body.sku.strip()
    _require_unique_sku(db, sku)
    doc = body.model_dump()
    doc["sku"] = sku
    doc["product_id"] = product_id
    doc["inventory"] = normalize_inventory(doc["inventory"])
    variant_id = create_document(db, "product_variant", doc)
    db["product"].update_one({"_id": product["_id"]}, {"$set": {"has_variants": True, "updated_at": now()}})
    log_inventory_change(db, product_id, 0, doc["inventory"]["quantity"], "product_created",
                         admin=admin, variant_id=variant_id, product_name=product.get("name"))
    return variant_to_api(serialize(db["product_variant"].find_one({"_id": to_object_id(variant_id)})))


def update_variant(db, variant_id: str, body: VariantUpdate, admin: dict) -> dict:
    existing = _get_variant_doc(db, variant_id)
    variant_id = str(existing["_id"])
    update = body.model_dump(exclude_none=True)
    if "sku" in update:
        update["sku"] = update["sku"].strip()
        if update["sku"] != existing.get("sku"):
            _require_unique_sku(db, update["sku"], variant_id)
    if "inventory" in update:
        update["inventory"] = normalize_inventory(update["inventory"])
        previous_qty = (existing.get("inventory") or {}).get("quantity", 0)
        if update["inventory"]["quantity"] != previous_qty:
            log_inventory_change(db, existing["product_id"], previous_qty, update["inventory"]["quantity"],
                                 "product_updated", admin=admin, variant_id=variant_id)
    update["updated_at"] = now()
    db["product_variant"].update_one({"_id": existing["_id"]}, {"$set": update})
    return variant_to_api(serialize(db["product_variant"].find_one({"_id": existing["_id"]})))


def delete_variant(db, variant_id: str, admin: dict):
    existing = _get_variant_doc(db, variant_id)
    variant_id = str(existing["_id"])
    if db["order_item"].find_one({"product_id": variant_id}):
        raise ValidationFailure("Cannot delete variant that is used in orders")
    db["product_variant"].delete_one({"_id": existing["_id"]})
    product_id = existing["product_id"]
    if not db["product_variant"].find_one({"product_id": product_id}):
        db["product"].update_one({"_id": to_object_id(product_id)}, {"$set": {"has_variants": False}})
    logger.info("Variant %s deleted by %s", variant_id, admin.get("username"))
