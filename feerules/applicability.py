import logging

from dateutil.relativedelta import relativedelta
from django.conf import settings
from django.contrib.auth import get_user_model
from django.utils import timezone

from feerules.models import FeeRule, FeeRuleUnitAssignment

User = get_user_model()

logger = logging.getLogger(__name__)


class ApplicabilityResolver:
    """
    Works out which users a fee rule currently applies to.

    Pure read: returns a queryset of active users and never raises for an
    unrecognised `applicable_to`, which resolves to nobody.
    """

    def __init__(self, clock=timezone.now):
        self.clock = clock

    def resolve(self, fee_rule):
        handler = {
            FeeRule.APPLICABLE_ALL_MEMBERS: self._all_members,
            FeeRule.APPLICABLE_UNIT_LEADERS: self._unit_leaders,
            FeeRule.APPLICABLE_NEW_MEMBERS: self._new_members,
            FeeRule.APPLICABLE_ACTIVE_MEMBERS: self._active_members,
            FeeRule.APPLICABLE_SPECIFIC_UNITS: self._specific_units,
        }.get(fee_rule.applicable_to)

        if handler is None:
            logger.warning(
                f"Unknown applicable_to value '{fee_rule.applicable_to}' "
                f"on fee rule {fee_rule.reference}"
            )
            return User.objects.none()

        users = handler(fee_rule)
        logger.info(
            f"Fee rule {fee_rule.reference} ({fee_rule.applicable_to}) "
            f"applies to {users.count()} users"
        )
        return users

    def resolve_ids(self, fee_rule):
        return set(self.resolve(fee_rule).values_list("id", flat=True))

    def _all_members(self, fee_rule):
        return User.objects.members().active()

    def _unit_leaders(self, fee_rule):
        return User.objects.unit_leaders().active()

    def _new_members(self, fee_rule):
        since = self.clock() - relativedelta(months=settings.FEE_NEW_MEMBER_MONTHS)
        return User.objects.members().active().filter(created_at__gte=since)

    def _active_members(self, fee_rule):
        since = self.clock() - relativedelta(months=settings.FEE_ACTIVE_MEMBER_MONTHS)
        return User.objects.members().active().filter(last_activity_at__gte=since)

    def _specific_units(self, fee_rule):
        unit_ids = FeeRuleUnitAssignment.objects.filter(
            fee_rule=fee_rule, is_active=True
        ).values_list("unit_id", flat=True)
        return User.objects.members().active().filter(unit_id__in=list(unit_ids))
