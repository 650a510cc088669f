# calculators.py
from datetime import date
from decimal import Decimal
from typing import Optional, Tuple

from dateutil.relativedelta import relativedelta

# ----------------------------------------------------------------------
# Helper: due date stepping
# ----------------------------------------------------------------------
DELTA = {
    "daily": relativedelta(days=1),
    "weekly": relativedelta(weeks=1),
    "monthly": relativedelta(months=1),
    "quarterly": relativedelta(months=3),
    "yearly": relativedelta(years=1),
    "per_transaction": relativedelta(),
    "one_time": relativedelta(),
}
DEFAULT_DELTA = relativedelta(months=1)


def calculate_due_date(effective_date: date, frequency: str) -> date:
    """
    First due date of a rule: one period after the effective date.
    One-off charges fall due on the effective date itself.
    """
    return effective_date + DELTA.get(frequency, DEFAULT_DELTA)


# ----------------------------------------------------------------------
# Amount resolution: unit override wins over the rule amount
# ----------------------------------------------------------------------
def get_unit_override(fee_rule, unit) -> Optional[Decimal]:
    if unit is None:
        return None
    assignment = (
        fee_rule.unit_assignments.filter(unit=unit, is_active=True)
        .only("custom_amount")
        .first()
    )
    if assignment is None:
        return None
    return assignment.custom_amount


def calculate_fee_amount(fee_rule, unit=None) -> Tuple[Decimal, Optional[Decimal]]:
    """
    Returns (final_amount, unit_override).
    """
    override = get_unit_override(fee_rule, unit)
    if override is not None:
        return override, override
    return fee_rule.amount, None
