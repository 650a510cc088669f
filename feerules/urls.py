from django.urls import path

from feerules.views import (
    FeeRuleListCreateView,
    FeeRuleDetailView,
    FeeRuleStatsView,
    RestoreFeeRuleView,
    ApplyFeeRuleView,
    ScheduleFeeRuleView,
    AssignFeeRuleUnitsView,
    ActivateScheduledFeeRulesView,
)

app_name = "feerules"

urlpatterns = [
    path("", FeeRuleListCreateView.as_view(), name="list-create"),
    path(
        "activate-scheduled/",
        ActivateScheduledFeeRulesView.as_view(),
        name="activate-scheduled",
    ),
    path("<str:reference>/", FeeRuleDetailView.as_view(), name="detail"),
    path("<str:reference>/stats/", FeeRuleStatsView.as_view(), name="stats"),
    path("<str:reference>/restore/", RestoreFeeRuleView.as_view(), name="restore"),
    path("<str:reference>/apply/", ApplyFeeRuleView.as_view(), name="apply"),
    path("<str:reference>/schedule/", ScheduleFeeRuleView.as_view(), name="schedule"),
    path(
        "<str:reference>/assign-units/",
        AssignFeeRuleUnitsView.as_view(),
        name="assign-units",
    ),
]
