"""
ViewSet for group purchase operations.
All writes go through GroupPurchaseService; failures come back as
{'error', 'error_code'} bodies.
"""
import logging
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny

from drf_spectacular.utils import (
    extend_schema,
    extend_schema_view,
    OpenApiParameter,
    OpenApiExample
)
from drf_spectacular.types import OpenApiTypes as Types

from .models import GroupPurchase
from .serializers import (
    GroupPurchaseListSerializer,
    GroupPurchaseDetailSerializer,
    GroupPurchaseCreateSerializer,
    JoinGroupPurchaseSerializer,
    CancelGroupPurchaseSerializer,
    ParticipationUpdateSerializer,
    ParticipantSerializer,
    GroupPurchaseUpdateSerializer
)
from .services.group_purchase_service import GroupPurchaseService

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    'NOT_FOUND': status.HTTP_404_NOT_FOUND,
    'FORBIDDEN': status.HTTP_403_FORBIDDEN,
    'CONCURRENCY_CONFLICT': status.HTTP_409_CONFLICT,
}


def error_response(result):
    """Build the error Response for a failed ServiceResult."""
    return Response({
        'error': result.error,
        'error_code': result.error_code
    }, status=ERROR_STATUS_CODES.get(result.error_code, status.HTTP_400_BAD_REQUEST))


@extend_schema_view(
    list=extend_schema(
        summary="List group purchases",
        description="""
        Retrieve group purchases, newest first.
        Purchases whose deadline has passed are expired before listing.

        **Permissions:** Public (no authentication required)
        """,
        parameters=[
            OpenApiParameter(
                name='status',
                type=Types.STR,
                location=OpenApiParameter.QUERY,
                description='Filter by status',
                examples=[
                    OpenApiExample('Open purchases', value='open'),
                    OpenApiExample('Fulfilled purchases', value='fulfilled'),
                ]
            ),
        ],
        tags=['Group Purchases']
    ),
    retrieve=extend_schema(
        summary="Get group purchase details",
        description="""
        Retrieve one group purchase. An open purchase past its deadline is
        expired before it is returned.

        **Permissions:** Public (no authentication required)
        """,
        tags=['Group Purchases']
    ),
    create=extend_schema(
        summary="Create a group purchase",
        description="""
        Open a new group purchase. The creator is enrolled as the first
        participant with a quantity of 1.

        **Example Request:**
```json
        {
            "title": "Bulk 14k gold chain order",
            "description": "Pooling for the vendor's 20 unit minimum",
            "target_quantity": 20,
            "unit_price": "120.00",
            "discounted_unit_price": "95.00",
            "deadline": "2026-12-01T18:00:00Z",
            "vendor_name": "Aurum Supply"
        }
```

        **Permissions:** Authenticated users only
        """,
        request=GroupPurchaseCreateSerializer,
        responses={201: GroupPurchaseDetailSerializer},
        tags=['Group Purchases']
    ),
)
class GroupPurchaseViewSet(viewsets.GenericViewSet):
    """
    ViewSet for group purchase operations.
    """
    queryset = GroupPurchase.objects.all()
    serializer_class = GroupPurchaseListSerializer
    lookup_value_regex = r'\d+'
    filterset_fields = ['creator', 'vendor_name']
    search_fields = ['title', 'description', 'vendor_name']
    ordering_fields = ['created_at', 'deadline', 'current_quantity']
    service = GroupPurchaseService()

    def get_permissions(self):
        """Configure permissions per action."""
        if self.action in ['list', 'retrieve', 'participants', 'updates']:
            permission_classes = [AllowAny]
        else:
            permission_classes = [IsAuthenticated]
        return [permission() for permission in permission_classes]

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return GroupPurchaseDetailSerializer
        elif self.action == 'create':
            return GroupPurchaseCreateSerializer
        return self.serializer_class

    def _paginated(self, queryset):
        queryset = self.filter_queryset(queryset)
        page = self.paginate_queryset(queryset)
        if page is not None:
            serializer = GroupPurchaseListSerializer(page, many=True)
            return self.get_paginated_response(serializer.data)
        serializer = GroupPurchaseListSerializer(queryset, many=True)
        return Response(serializer.data)

    def list(self, request):
        result = self.service.list_group_purchases(
            status=request.query_params.get('status') or None
        )
        if not result.success:
            return error_response(result)
        return self._paginated(result.data)

    def retrieve(self, request, pk=None):
        result = self.service.get_group_purchase(int(pk))
        if not result.success:
            return error_response(result)
        return Response(GroupPurchaseDetailSerializer(result.data).data)

    def create(self, request):
        serializer = GroupPurchaseCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = self.service.create_group_purchase(
            creator=request.user,
            **serializer.validated_data
        )

        if result.success:
            return Response(
                GroupPurchaseDetailSerializer(result.data).data,
                status=status.HTTP_201_CREATED
            )
        return error_response(result)

    @extend_schema(
        summary="Join a group purchase",
        description="""
        Commit a quantity to an open group purchase. Reaching the target
        quantity fulfills the purchase.

        **Errors:**
        - 404 `NOT_FOUND`
        - 400 `NOT_OPEN`, `ALREADY_PARTICIPATING`, `INVALID_QUANTITY`
        - 409 `CONCURRENCY_CONFLICT`

        **Permissions:** Authenticated users only
        """,
        request=JoinGroupPurchaseSerializer,
        responses={201: ParticipantSerializer},
        tags=['Group Purchases']
    )
    @action(detail=True, methods=['post'])
    def join(self, request, pk=None):
        """
        POST /api/v1/group-purchases/{id}/join
        """
        serializer = JoinGroupPurchaseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = self.service.join_group_purchase(
            purchase_id=int(pk),
            user=request.user,
            quantity=serializer.validated_data['quantity'],
            status=serializer.validated_data['status']
        )

        if result.success:
            return Response(
                ParticipantSerializer(result.data['participant']).data,
                status=status.HTTP_201_CREATED
            )
        return error_response(result)

    @extend_schema(
        summary="Cancel a group purchase",
        description="""
        Cancel an open group purchase. Only the creator may cancel.

        **Permissions:** Creator only
        """,
        request=CancelGroupPurchaseSerializer,
        responses={200: GroupPurchaseDetailSerializer},
        tags=['Group Purchases']
    )
    @action(detail=True, methods=['patch'])
    def cancel(self, request, pk=None):
        """
        PATCH /api/v1/group-purchases/{id}/cancel
        """
        serializer = CancelGroupPurchaseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = self.service.cancel_group_purchase(
            purchase_id=int(pk),
            requesting_user=request.user,
            reason=serializer.validated_data.get('reason') or None
        )

        if result.success:
            return Response(GroupPurchaseDetailSerializer(result.data).data)
        return error_response(result)

    @extend_schema(
        summary="Leave a group purchase",
        description="""
        Withdraw your participation while the purchase is open.
        The creator cannot leave and should cancel instead.

        **Permissions:** Authenticated participants
        """,
        request=None,
        responses={200: GroupPurchaseDetailSerializer},
        tags=['Group Purchases']
    )
    @action(detail=True, methods=['post'])
    def leave(self, request, pk=None):
        result = self.service.leave_group_purchase(
            purchase_id=int(pk),
            user=request.user
        )

        if result.success:
            return Response(
                GroupPurchaseDetailSerializer(result.data['group_purchase']).data
            )
        return error_response(result)

    @extend_schema(
        summary="Update your participation",
        description="""
        Change your committed quantity and/or participant status while the
        purchase is open.

        **Permissions:** Authenticated participants
        """,
        request=ParticipationUpdateSerializer,
        responses={200: ParticipantSerializer},
        tags=['Group Purchases']
    )
    @action(detail=True, methods=['patch'])
    def participation(self, request, pk=None):
        serializer = ParticipationUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = self.service.update_participation(
            purchase_id=int(pk),
            user=request.user,
            quantity=serializer.validated_data.get('quantity'),
            status=serializer.validated_data.get('status')
        )

        if result.success:
            return Response(ParticipantSerializer(result.data['participant']).data)
        return error_response(result)

    @extend_schema(
        summary="List participants",
        responses={200: ParticipantSerializer(many=True)},
        tags=['Group Purchases']
    )
    @action(detail=True, methods=['get'])
    def participants(self, request, pk=None):
        result = self.service.list_participants(int(pk))
        if not result.success:
            return error_response(result)
        return Response(ParticipantSerializer(result.data, many=True).data)

    @extend_schema(
        summary="Recent activity on a group purchase",
        responses={200: GroupPurchaseUpdateSerializer(many=True)},
        tags=['Group Purchases']
    )
    @action(detail=True, methods=['get'])
    def updates(self, request, pk=None):
        result = self.service.list_updates(int(pk))
        if not result.success:
            return error_response(result)
        return Response(GroupPurchaseUpdateSerializer(result.data, many=True).data)

    @extend_schema(
        summary="Group purchases I created",
        responses={200: GroupPurchaseListSerializer(many=True)},
        tags=['Group Purchases']
    )
    @action(detail=False, methods=['get'])
    def created(self, request):
        result = self.service.list_created(request.user)
        return self._paginated(result.data)

    @extend_schema(
        summary="Group purchases I participate in",
        responses={200: GroupPurchaseListSerializer(many=True)},
        tags=['Group Purchases']
    )
    @action(detail=False, methods=['get'])
    def participating(self, request):
        result = self.service.list_participating(request.user)
        return self._paginated(result.data)
