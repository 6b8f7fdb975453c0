"""
Shop settings service.

The settings table holds exactly one row. It is created explicitly by
ensure_defaults() during bootstrap (CLI `system init`, wsgi startup, test
fixtures); reads never create it as a side effect.
"""
from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..errors import NotFoundError, ValidationError
from ..models import ShopSettings
from ..validation import coerce_int
from .concurrency import resolve_session, unit_of_work


DEFAULT_SETTINGS = {
    "shop_name": "Smart POS",
    "shop_address": None,
    "shop_phone": None,
    "shop_email": None,
    "shop_logo": None,
    "tax_enabled": False,
    "tax_rate_bps": 0,
    "tax_label": "VAT",
    "currency": "LKR",
    "currency_symbol": "Rs.",
    "receipt_header": None,
    "receipt_footer": "Thank you for your business!",
    "show_logo": True,
    "low_stock_threshold": 10,
}

STRING_FIELDS = {
    "shop_name": 255,
    "shop_address": None,
    "shop_phone": 64,
    "shop_email": 255,
    "shop_logo": None,
    "tax_label": 32,
    "currency": 8,
    "currency_symbol": 8,
    "receipt_header": None,
    "receipt_footer": None,
}
REQUIRED_STRING_FIELDS = {"shop_name", "tax_label", "currency", "currency_symbol"}
BOOL_FIELDS = {"tax_enabled", "show_logo"}
INT_FIELDS = {"tax_rate_bps", "low_stock_threshold"}
WRITABLE_FIELDS = set(STRING_FIELDS) | BOOL_FIELDS | INT_FIELDS

MAX_TAX_RATE_BPS = 10_000


@dataclass(frozen=True)
class TaxConfig:
    enabled: bool
    rate_bps: int
    label: str

    @property
    def effective_rate_bps(self) -> int:
        return self.rate_bps if self.enabled else 0


def ensure_defaults(session=None) -> ShopSettings:
    """Create the settings row with defaults if it does not exist yet."""
    session = resolve_session(session)
    settings = session.query(ShopSettings).order_by(ShopSettings.id.asc()).first()
    if settings is not None:
        return settings
    with unit_of_work(session):
        settings = ShopSettings(**DEFAULT_SETTINGS)
        session.add(settings)
    current_app.logger.info("Created default shop settings")
    return settings


def get_settings(session=None) -> ShopSettings:
    session = resolve_session(session)
    settings = session.query(ShopSettings).order_by(ShopSettings.id.asc()).first()
    if settings is None:
        raise NotFoundError("Shop settings have not been initialized")
    return settings


def tax_config(session=None) -> TaxConfig:
    settings = get_settings(session)
    return TaxConfig(
        enabled=bool(settings.tax_enabled),
        rate_bps=int(settings.tax_rate_bps or 0),
        label=settings.tax_label,
    )


def validate_settings_patch(payload: dict) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    patch: dict = {}
    for key, value in payload.items():
        if key not in WRITABLE_FIELDS:
            raise ValidationError(f"Field not allowed: {key}")

        if key in BOOL_FIELDS:
            if not isinstance(value, bool):
                raise ValidationError(f"{key} must be a boolean")
            patch[key] = value
        elif key in INT_FIELDS:
            patch[key] = coerce_int(key, value)
        else:
            if value is None:
                if key in REQUIRED_STRING_FIELDS:
                    raise ValidationError(f"{key} cannot be null")
                patch[key] = None
                continue
            text = str(value).strip()
            if key in REQUIRED_STRING_FIELDS and not text:
                raise ValidationError(f"{key} cannot be blank")
            max_len = STRING_FIELDS[key]
            if max_len and len(text) > max_len:
                raise ValidationError(f"{key} exceeds max length {max_len}")
            patch[key] = text or None

    if "tax_rate_bps" in patch and not 0 <= patch["tax_rate_bps"] <= MAX_TAX_RATE_BPS:
        raise ValidationError("tax_rate_bps must be between 0 and 10000")

    if "low_stock_threshold" in patch and patch["low_stock_threshold"] < 0:
        raise ValidationError("low_stock_threshold must be >= 0")

    return patch


def update_settings(payload: dict, session=None) -> ShopSettings:
    """Partial update; only provided fields change."""
    patch = validate_settings_patch(payload)
    session = resolve_session(session)
    with unit_of_work(session):
        settings = get_settings(session)
        for key, value in patch.items():
            setattr(settings, key, value)
    return settings


def reset_settings(session=None) -> ShopSettings:
    session = resolve_session(session)
    with unit_of_work(session):
        settings = get_settings(session)
        for key, value in DEFAULT_SETTINGS.items():
            setattr(settings, key, value)
    current_app.logger.info("Shop settings reset to defaults")
    return settings
