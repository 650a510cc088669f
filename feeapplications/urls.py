from django.urls import path

from feeapplications.views import FeeApplicationListView, FeeApplicationRetrieveView

app_name = "feeapplications"

urlpatterns = [
    path("", FeeApplicationListView.as_view(), name="list"),
    path("<str:reference>/", FeeApplicationRetrieveView.as_view(), name="detail"),
]
