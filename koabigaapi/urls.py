from django.contrib import admin
from django.urls import path, include
from rest_framework.authtoken.views import obtain_auth_token

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/v1/auth/token/", obtain_auth_token, name="token"),
    path("api/v1/feerules/", include("feerules.urls")),
    path("api/v1/feeapplications/", include("feeapplications.urls")),
    path("api/v1/payments/", include("payments.urls")),
]
