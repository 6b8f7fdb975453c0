from __future__ import annotations

from ..extensions import db
from smartpos.time_utils import to_utc_z


class ShopSettings(db.Model):
    """
    Singleton shop configuration row.

    Created by settings_service.ensure_defaults() at bootstrap, never lazily
    on a read path. Tax is stored in basis points (500 = 5%).
    """
    __tablename__ = "shop_settings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    shop_name = db.Column(db.String(255), nullable=False)
    shop_address = db.Column(db.Text, nullable=True)
    shop_phone = db.Column(db.String(64), nullable=True)
    shop_email = db.Column(db.String(255), nullable=True)
    shop_logo = db.Column(db.Text, nullable=True)

    tax_enabled = db.Column(db.Boolean, nullable=False, default=False)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    tax_label = db.Column(db.String(32), nullable=False, default="VAT")

    currency = db.Column(db.String(8), nullable=False)
    currency_symbol = db.Column(db.String(8), nullable=False)

    receipt_header = db.Column(db.Text, nullable=True)
    receipt_footer = db.Column(db.Text, nullable=True)
    show_logo = db.Column(db.Boolean, nullable=False, default=True)

    low_stock_threshold = db.Column(db.Integer, nullable=False, default=10)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_name": self.shop_name,
            "shop_address": self.shop_address,
            "shop_phone": self.shop_phone,
            "shop_email": self.shop_email,
            "shop_logo": self.shop_logo,
            "tax_enabled": self.tax_enabled,
            "tax_rate_bps": self.tax_rate_bps,
            "tax_label": self.tax_label,
            "currency": self.currency,
            "currency_symbol": self.currency_symbol,
            "receipt_header": self.receipt_header,
            "receipt_footer": self.receipt_footer,
            "show_logo": self.show_logo,
            "low_stock_threshold": self.low_stock_threshold,
            "updated_at": to_utc_z(self.updated_at),
        }
