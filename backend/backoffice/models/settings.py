from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z


class AppSetting(db.Model):
    """
    Global key-value settings.

    Keys read by checkout:
    - tax_rate: percentage as text, e.g. "7.5"
    - currency: ISO code, e.g. "NGN"
    """
    __tablename__ = "app_settings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(128), nullable=False, unique=True)
    value = db.Column(db.Text, nullable=True)

    updated_by = db.Column(db.String(64), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self):
        return {
            "id": self.id,
            "key": self.key,
            "value": self.value,
            "updated_by": self.updated_by,
            "updated_at": to_utc_z(self.updated_at),
        }
