import logging

from django.shortcuts import get_object_or_404
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from apps.accounts.permissions import IsStaffRole
from apps.utils.middleware import STORE_HEADER
from apps.utils.throttle import BurstRateThrottle

from .models import Order
from .serializers import (
    CheckoutSerializer,
    OrderSerializer,
    OrderStatusSerializer,
    OrderTrackingSerializer,
    ReturnRequestCreateSerializer,
    ReturnRequestSerializer,
)
from .services import OrderService, ReturnRequestService

logger = logging.getLogger(__name__)


class OrderViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    Checkout, order history, staff status updates, public tracking and
    return/exchange requests.
    """
    serializer_class = OrderSerializer
    permission_classes = [IsAuthenticated]
    filterset_fields = ["status"]

    def get_permissions(self):
        if self.action in ("create", "track"):
            return [AllowAny()]
        if self.action == "update_status":
            return [IsStaffRole()]
        return [IsAuthenticated()]

    def get_throttles(self):
        if self.action == "create":
            return [BurstRateThrottle()]
        return super().get_throttles()

    def get_queryset(self):
        qs = (
            Order.objects
            .select_related("customer")
            .prefetch_related("items__product")
        )
        user = self.request.user
        if not user.is_authenticated:
            return qs.none()
        if user.is_store_staff:
            return qs
        return qs.filter(customer=user)

    def retrieve(self, request, *args, **kwargs):
        return Response({"success": True, "data": self.get_serializer(self.get_object()).data})

    def create(self, request):
        """
        Checkout. An Idempotency-Key header makes retries return the
        original order instead of placing a new one.
        """
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        order = OrderService.place_order(
            customer=request.user if request.user.is_authenticated else None,
            items=data["items"],
            shipping_address=data["shipping_address"],
            notes=data.get("notes", ""),
        )

        return Response(
            {"success": True, "data": OrderSerializer(order).data},
            status=status.HTTP_201_CREATED,
            headers={STORE_HEADER: "1"},
        )

    @action(detail=True, methods=["patch"], url_path="status")
    def update_status(self, request, pk=None):
        order = self.get_object()
        serializer = OrderStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = OrderService.update_status(order, serializer.validated_data["status"])
        return Response({"success": True, "data": OrderSerializer(order).data})

    @action(detail=False, methods=["get"], url_path=r"track/(?P<order_number>[^/]+)")
    def track(self, request, order_number=None):
        order = get_object_or_404(
            Order.objects.select_related("customer", "return_request").prefetch_related("items__product"),
            order_number=order_number,
        )
        return Response({"success": True, "data": OrderTrackingSerializer(order).data})

    @action(detail=True, methods=["post"], url_path="return-request")
    def return_request(self, request, pk=None):
        order = self.get_object()
        serializer = ReturnRequestCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        return_request = ReturnRequestService.create_request(
            order=order,
            customer=request.user,
            request_type=data["type"],
            reason=data["reason"],
            items=data.get("items"),
        )
        return Response(
            {
                "success": True,
                "message": "Return/exchange request submitted successfully",
                "data": ReturnRequestSerializer(return_request).data,
            },
            status=status.HTTP_201_CREATED,
        )
