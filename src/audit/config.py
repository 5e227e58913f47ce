"""Configuration for the field-level edit audit log."""

from dataclasses import dataclass, field
from typing import List, Optional

TRACKED_FIELDS = (
    "trade_date",
    "instrument_id",
    "transaction_type",
    "quantity",
    "unit_price",
    "notes",
)

NUMERIC_FIELDS = ("quantity", "unit_price")

AUDIT_EPSILON = 1e-4


@dataclass
class AuditConfig:
    """Master configuration for the audit log."""

    enabled: bool = True
    epsilon: float = AUDIT_EPSILON
    tracked_fields: List[str] = field(default_factory=lambda: list(TRACKED_FIELDS))
    numeric_fields: List[str] = field(default_factory=lambda: list(NUMERIC_FIELDS))

    @classmethod
    def from_settings(cls, settings: Optional[object] = None) -> "AuditConfig":
        """Build from application settings (defaults to the cached Settings)."""
        if settings is None:
            from src.settings import get_settings
            settings = get_settings()
        return cls(epsilon=settings.audit_epsilon)

    def is_numeric(self, field_name: str) -> bool:
        return field_name in self.numeric_fields
