"""
Cookie-held shopping cart

The cart is the list of line items itself, JSON encoded and HMAC signed into
the ``cart`` cookie. Nothing is stored server-side. Mutations return the new
item list; totals are left to the client.
"""
import hmac
import json
import logging
from typing import List, Optional

from fastapi import Response
from pydantic import ValidationError

import config
from auth import b64url_decode, b64url_encode, sign
from errors import MalformedClientState, NotFound, ValidationFailure
from schemas import CartItem

logger = logging.getLogger(__name__)


def encode_cart(items: List[dict]) -> str:
    payload = b64url_encode(json.dumps(items, separators=(',', ':')).encode())
    return f"{payload}.{sign(payload.encode(), config.CART_SECRET)}"


def decode_cart(value: Optional[str]) -> List[dict]:
    """Parse and verify a cart cookie. A missing or empty cookie is an empty cart."""
    if not value:
        return []
    try:
        payload, sig = value.rsplit('.', 1)
        if not hmac.compare_digest(sign(payload.encode(), config.CART_SECRET), sig):
            raise ValueError("Bad cart signature")
        raw = json.loads(b64url_decode(payload))
        if not isinstance(raw, list):
            raise ValueError("Cart is not a list")
        return [CartItem.model_validate(i).model_dump() for i in raw]
    except (ValueError, TypeError, ValidationError) as e:
        logger.warning("Rejected cart cookie: %s", e)
        raise MalformedClientState("Invalid cart data")


def add_item(items: List[dict], snapshot: dict, quantity: int = 1) -> List[dict]:
    if quantity < 1:
        raise ValidationFailure("Invalid quantity")
    for item in items:
        if item["id"] == snapshot["id"]:
            return [dict(i, quantity=i["quantity"] + quantity) if i["id"] == snapshot["id"] else i
                    for i in items]
    return items + [{**snapshot, "quantity": quantity}]


def update_quantity(items: List[dict], item_id: str, quantity: Optional[int]) -> List[dict]:
    if quantity is None or quantity < 0:
        raise ValidationFailure("Invalid quantity")
    if not any(i["id"] == item_id for i in items):
        raise NotFound("Item not found")
    if quantity == 0:
        return remove_item(items, item_id)
    return [dict(i, quantity=quantity) if i["id"] == item_id else i for i in items]


def remove_item(items: List[dict], item_id: str) -> List[dict]:
    return [i for i in items if i["id"] != item_id]


def set_cart_cookie(response: Response, items: List[dict]):
    response.set_cookie(
        key=config.CART_COOKIE,
        value=encode_cart(items),
        max_age=config.CART_COOKIE_MAX_AGE,
        path="/",
        httponly=True,
        secure=config.IS_PRODUCTION,
        samesite="strict",
    )


def clear_cart_cookie(response: Response):
    response.set_cookie(
        key=config.CART_COOKIE,
        value="",
        max_age=0,
        path="/",
        httponly=True,
        secure=config.IS_PRODUCTION,
        samesite="strict",
    )
