from dataclasses import dataclass, asdict
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional


def _to_decimal(value) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


@dataclass(frozen=True)
class CalculationSnapshot:
    """
    How a fee application's amount was arrived at, frozen at creation.
    Stored as JSON on the application.
    """

    base_amount: Decimal
    final_amount: Decimal
    applied_at: datetime
    unit_override: Optional[Decimal] = None

    def to_dict(self):
        data = asdict(self)
        data["base_amount"] = str(self.base_amount)
        data["final_amount"] = str(self.final_amount)
        data["unit_override"] = (
            str(self.unit_override) if self.unit_override is not None else None
        )
        data["applied_at"] = self.applied_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data):
        if not data:
            return None
        applied_at = data.get("applied_at")
        if isinstance(applied_at, str):
            try:
                applied_at = datetime.fromisoformat(applied_at)
            except ValueError:
                applied_at = None
        return cls(
            base_amount=_to_decimal(data.get("base_amount")),
            final_amount=_to_decimal(data.get("final_amount")),
            applied_at=applied_at,
            unit_override=_to_decimal(data.get("unit_override")),
        )
