"""
Store-wide settings kept as singleton documents in the ``settings`` collection,
one per section, keyed by ``_id``.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from database import now
from errors import NotFound
from schemas import NotificationSettings, PromoBanner, ShippingSettings, StoreSettings

logger = logging.getLogger(__name__)

SECTIONS = {
    "store": StoreSettings,
    "shipping": ShippingSettings,
    "notifications": NotificationSettings,
    "promo_banner": PromoBanner,
}


def section_model(section: str):
    model = SECTIONS.get(section)
    if model is None:
        raise NotFound(f"Unknown settings section: {section}")
    return model


def save_section(db, section: str, payload: dict) -> dict:
    """Validate ``payload`` against the section schema and upsert it."""
    model = section_model(section)
    value = model.model_validate(payload).model_dump()
    db["settings"].update_one(
        {"_id": section},
        {"$set": {"value": value, "updated_at": now()}},
        upsert=True,
    )
    logger.info("Saved %s settings", section)
    return model.model_validate(value).model_dump(by_alias=True)


def get_settings(db) -> dict:
    settings = {}
    for doc in db["settings"].find({"_id": {"$in": list(SECTIONS)}}):
        model = SECTIONS[doc["_id"]]
        settings[doc["_id"]] = model.model_validate(doc.get("value") or {}).model_dump(by_alias=True)
    return settings


def _aware(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def is_banner_active(banner: PromoBanner, at: Optional[datetime] = None) -> bool:
    if not banner.enabled or not banner.text:
        return False
    at = _aware(at) or datetime.now(timezone.utc)
    start, end = _aware(banner.start_date), _aware(banner.end_date)
    if start and at < start:
        return False
    if end and at > end:
        return False
    return True


def get_active_banner(db, at: Optional[datetime] = None) -> Optional[dict]:
    doc = db["settings"].find_one({"_id": "promo_banner"})
    if not doc:
        return None
    banner = PromoBanner.model_validate(doc.get("value") or {})
    if not is_banner_active(banner, at):
        return None
    return banner.model_dump(by_alias=True)
