from rest_framework import generics
from rest_framework.permissions import IsAuthenticated

from accounts.permissions import IsOwnerOrSystemAdmin
from feeapplications.models import FeeApplication
from feeapplications.serializers import FeeApplicationSerializer


class FeeApplicationListView(generics.ListAPIView):
    serializer_class = FeeApplicationSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        user = self.request.user
        queryset = FeeApplication.objects.select_related("fee_rule", "user", "unit")
        if not (user.is_admin or user.is_superuser):
            queryset = queryset.for_user(user)
        status = self.request.query_params.get("status")
        if status:
            queryset = queryset.filter(status=status)
        return queryset


class FeeApplicationRetrieveView(generics.RetrieveAPIView):
    queryset = FeeApplication.objects.select_related("fee_rule", "user", "unit")
    serializer_class = FeeApplicationSerializer
    permission_classes = [IsAuthenticated, IsOwnerOrSystemAdmin]
    lookup_field = "reference"
