import logging
import time
from typing import Optional

from fastapi import Body, Cookie, Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pymongo.errors import PyMongoError

import auth
import cart as cart_state
import catalog
import config
import database
import inventory
import orders
import products
import store_settings
from cache import TagCache
from errors import StoreError, ValidationFailure
from schemas import (
    CartAdd, CartQuantityUpdate, CheckoutRequest, InventoryAdjust, LoginRequest, OrderStatusUpdate,
    ProductCreate, ProductUpdate, RevalidateRequest, VariantCreate, VariantUpdate,
)

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("storefront")

# FastAPI app
app = FastAPI(title="Storefront API", version="1.0.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.state.cache = TagCache(ttl=config.CATALOG_CACHE_TTL)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return error_response(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ())[1:])
    message = f"{field}: {first.get('msg')}" if field else str(first.get("msg", "Invalid request"))
    return error_response(400, message)


@app.exception_handler(ValidationError)
async def model_validation_handler(request: Request, exc: ValidationError):
    first = exc.errors()[0]
    field = ".".join(str(p) for p in first.get("loc", ()))
    return error_response(400, f"{field}: {first.get('msg')}" if field else first.get("msg"))


@app.exception_handler(PyMongoError)
async def datastore_error_handler(request: Request, exc: PyMongoError):
    logger.exception("Datastore error on %s %s", request.method, request.url.path)
    return error_response(500, "Internal server error")


# Dependencies
def get_cache(request: Request) -> TagCache:
    return request.app.state.cache


# Health
@app.get("/")
def root():
    return {"message": "Storefront API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database_url": "✅ Set" if config.DATABASE_URL else "❌ Not Set",
        "database_name": "✅ Set" if config.DATABASE_NAME else "❌ Not Set",
        "collections": []
    }
    try:
        if database.db is not None:
            response["collections"] = database.db.list_collection_names()[:10]
    except PyMongoError as e:
        response["error"] = str(e)[:120]
    return response


# Auth
@app.post("/auth")
def login(body: LoginRequest, response: Response, db=Depends(database.get_db)):
    user, token = auth.login(db, body.username, body.password)
    auth.set_session_cookie(response, token)
    return {"success": True, "user": user}


@app.delete("/auth")
def logout(response: Response):
    auth.clear_session_cookie(response)
    return {"success": True, "message": "Logged out successfully"}


@app.get("/auth")
def verify(admin: dict = Depends(auth.get_current_admin)):
    return {"success": True, "user": admin}


# Catalog
@app.get("/products")
def get_products(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=catalog.MAX_PAGE_SIZE),
    category: Optional[str] = None,
    search: Optional[str] = None,
    featured: bool = False,
    id: Optional[str] = None,
    db=Depends(database.get_db),
    cache: TagCache = Depends(get_cache),
):
    if id:
        product = cache.get_or_set(config.PRODUCTS_CACHE_TAG, ("product", id),
                                   lambda: catalog.get_product(db, id))
        return {"product": product}
    key = ("list", page, limit, category, search, featured)
    try:
        return cache.get_or_set(config.PRODUCTS_CACHE_TAG, key,
                                lambda: catalog.list_products(db, page, limit, category, search, featured))
    except PyMongoError:
        logger.exception("Catalog listing failed")
        return {
            "products": [],
            "pagination": {"page": page, "limit": limit, "total": 0, "totalPages": 0},
            "message": "No products available",
        }


# Cart
@app.get("/cart")
def get_cart(cart_cookie: Optional[str] = Cookie(default=None, alias=config.CART_COOKIE)):
    return {"success": True, "items": cart_state.decode_cart(cart_cookie)}


@app.post("/cart")
def add_to_cart(body: CartAdd, response: Response, db=Depends(database.get_db),
                cart_cookie: Optional[str] = Cookie(default=None, alias=config.CART_COOKIE)):
    items = cart_state.decode_cart(cart_cookie)
    snapshot = catalog.find_purchasable(db, body.id)
    items = cart_state.add_item(items, snapshot, body.quantity)
    cart_state.set_cart_cookie(response, items)
    return {"success": True, "items": items}


@app.patch("/cart/{item_id}")
def update_cart_item(item_id: str, body: CartQuantityUpdate, response: Response,
                     cart_cookie: Optional[str] = Cookie(default=None, alias=config.CART_COOKIE)):
    items = cart_state.decode_cart(cart_cookie)
    items = cart_state.update_quantity(items, item_id, body.quantity)
    cart_state.set_cart_cookie(response, items)
    return {"success": True, "items": items}


@app.delete("/cart/{item_id}")
def remove_cart_item(item_id: str, response: Response,
                     cart_cookie: Optional[str] = Cookie(default=None, alias=config.CART_COOKIE)):
    items = cart_state.remove_item(cart_state.decode_cart(cart_cookie), item_id)
    cart_state.set_cart_cookie(response, items)
    return {"success": True, "items": items}


# Checkout
@app.post("/checkout")
def checkout(body: CheckoutRequest, response: Response, db=Depends(database.get_db),
             cart_cookie: Optional[str] = Cookie(default=None, alias=config.CART_COOKIE)):
    items = cart_state.decode_cart(cart_cookie)
    order = orders.checkout(db, items, body)
    cart_state.clear_cart_cookie(response)
    return {"success": True, "orderId": order["orderNumber"], "order": order}


# Promo banner
@app.get("/promo-banner")
def promo_banner(db=Depends(database.get_db)):
    return {"banner": store_settings.get_active_banner(db)}


# Admin: orders
@app.get("/admin/orders")
def admin_orders(page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
                 status: Optional[str] = None, db=Depends(database.get_db), admin: dict = Depends(auth.require_admin)):
    return orders.list_orders(db, page, limit, status)


@app.get("/admin/orders/{order_id}")
def admin_order_detail(order_id: str, db=Depends(database.get_db), admin: dict = Depends(auth.require_admin)):
    return {"order": orders.get_order(db, order_id)}


@app.patch("/admin/orders/{order_id}")
def admin_update_order(order_id: str, body: OrderStatusUpdate, db=Depends(database.get_db),
                       admin: dict = Depends(auth.require_admin), cache: TagCache = Depends(get_cache)):
    order = orders.update_order_status(db, order_id, body.status, admin)
    if order["status"] == "completed":
        cache.revalidate(config.PRODUCTS_CACHE_TAG)
    return {"success": True, "order": order}


# Admin: products
@app.get("/admin/products")
def admin_products(page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
                   status: Optional[str] = None, search: Optional[str] = None,
                   db=Depends(database.get_db), admin: dict = Depends(auth.require_admin)):
    return products.list_products(db, page, limit, status, search)


@app.get("/admin/products/check-sku")
def check_sku(sku: Optional[str] = None, productId: Optional[str] = None, db=Depends(database.get_db)):
    if not sku:
        raise ValidationFailure("SKU is required")
    return {"isUnique": products.is_sku_unique(db, sku, productId)}


@app.post("/admin/products")
def admin_create_product(body: ProductCreate, db=Depends(database.get_db), admin: dict = Depends(auth.require_admin),
                         cache: TagCache = Depends(get_cache)):
    product = products.create_product(db, body, admin)
    cache.revalidate(config.PRODUCTS_CACHE_TAG)
    return {"success": True, "product": product}


@app.get("/admin/products/{product_id}")
def admin_product_detail(product_id: str, db=Depends(database.get_db), admin: dict = Depends(auth.require_admin)):
    return {"product": products.get_product(db, product_id)}


@app.put("/admin/products/{product_id}")
def admin_update_product(product_id: str, body: ProductUpdate, db=Depends(database.get_db),
                         admin: dict = Depends(auth.require_admin), cache: TagCache = Depends(get_cache)):
    product = products.update_product(db, product_id, body, admin)
    cache.revalidate(config.PRODUCTS_CACHE_TAG)
    return {"success": True, "product": product}


@app.delete("/admin/products/{product_id}")
def admin_delete_product(product_id: str, db=Depends(database.get_db), admin: dict = Depends(auth.require_admin),
                         cache: TagCache = Depends(get_cache)):
    products.delete_product(db, product_id, admin)
    cache.revalidate(config.PRODUCTS_CACHE_TAG)
    return {"success": True, "message": "Product deleted successfully"}


@app.post("/admin/products/{product_id}/variants")
def admin_create_variant(product_id: str, body: VariantCreate, db=Depends(database.get_db),
                         admin: dict = Depends(auth.require_admin), cache: TagCache = Depends(get_cache)):
    variant = products.create_variant(db, product_id, body, admin)
    cache.revalidate(config.PRODUCTS_CACHE_TAG)
    return {"success": True, "variant": variant}


@app.put("/admin/variants/{variant_id}")
def admin_update_variant(variant_id: str, body: VariantUpdate, db=Depends(database.get_db),
                         admin: dict = Depends(auth.require_admin), cache: TagCache = Depends(get_cache)):
    variant = products.update_variant(db, variant_id, body, admin)
    cache.revalidate(config.PRODUCTS_CACHE_TAG)
    return {"success": True, "variant": variant}


@app.delete("/admin/variants/{variant_id}")
def admin_delete_variant(variant_id: str, db=Depends(database.get_db), admin: dict = Depends(auth.require_admin),
                         cache: TagCache = Depends(get_cache)):
    products.delete_variant(db, variant_id, admin)
    cache.revalidate(config.PRODUCTS_CACHE_TAG)
    return {"success": True}


# Admin: inventory
@app.post("/admin/inventory/{product_id}/adjust")
def admin_adjust_inventory(product_id: str, body: InventoryAdjust, db=Depends(database.get_db),
                           admin: dict = Depends(auth.require_admin), cache: TagCache = Depends(get_cache)):
    inventory.adjust_inventory(db, product_id, body.quantity, body.reason, admin,
                               variant_id=body.variant_id, details=body.details)
    cache.revalidate(config.PRODUCTS_CACHE_TAG)
    return {"success": True, "product": products.get_product(db, product_id)}


@app.get("/admin/inventory/logs")
def admin_inventory_logs(productId: Optional[str] = None, reason: Optional[str] = None,
                         page: int = Query(1, ge=1), limit: int = Query(50, ge=1, le=200),
                         db=Depends(database.get_db), admin: dict = Depends(auth.require_admin)):
    return inventory.get_inventory_logs(db, productId, reason, page, limit)


# Admin: settings
@app.get("/admin/settings")
def admin_settings(db=Depends(database.get_db), admin: dict = Depends(auth.require_admin)):
    return {"settings": store_settings.get_settings(db)}


@app.put("/admin/settings/{section}")
def admin_save_settings(section: str, payload: dict = Body(...), db=Depends(database.get_db),
                        admin: dict = Depends(auth.require_admin)):
    return {"success": True, section: store_settings.save_section(db, section, payload)}


# Cache
@app.post("/revalidate")
def revalidate(body: Optional[RevalidateRequest] = None, admin: dict = Depends(auth.require_admin),
               cache: TagCache = Depends(get_cache)):
    tag = body.tag if body else config.PRODUCTS_CACHE_TAG
    cache.revalidate(tag)
    return {"revalidated": True, "now": int(time.time() * 1000), "cache": tag}


if __name__ == "__main__":
    import os
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
