import math

from rest_framework.decorators import api_view
from rest_framework.response import Response
from rest_framework import status
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes
from .serializers import (
    # Input serializers
    LeaderboardQuerySerializer,
    # Response serializers
    LeaderboardRowSerializer,
    LeaderboardResponseSerializer,
    TierUserSerializer,
    UserLeaderboardResponseSerializer,
    UserProfileSerializer,
    UserProfileResponseSerializer,
    ErrorSerializer,
)
from .services import (
    LeaderboardIndex,
    TierLedger,
    LedgerServiceError,
)


@extend_schema(
    parameters=[
        OpenApiParameter('limit', OpenApiTypes.INT, description='Entries per page (1-100, default 20)'),
        OpenApiParameter('page', OpenApiTypes.INT, description='1-based page number (default 1)'),
    ],
    responses={
        200: LeaderboardResponseSerializer,
        400: ErrorSerializer,
    },
    description="Ranked list of paying users, highest cumulative spend first.",
    tags=['leaderboard'],
)
@api_view(['GET'])
def leaderboard_list(request):
    """Paginated leaderboard - thin HTTP handler."""
    query_serializer = LeaderboardQuerySerializer(data=request.query_params)
    query_serializer.is_valid(raise_exception=True)
    params = query_serializer.validated_data

    limit = params['limit']
    page = params['page']

    index = LeaderboardIndex()
    total = index.count()
    rows = index.page(offset=(page - 1) * limit, limit=limit)

    return Response({
        'leaderboard': LeaderboardRowSerializer(rows, many=True).data,
        'pagination': {
            'total': total,
            'page': page,
            'limit': limit,
            'pages': math.ceil(total / limit),
        }
    })


@extend_schema(
    responses={
        200: UserLeaderboardResponseSerializer,
        404: ErrorSerializer,
    },
    description="A single user's leaderboard position and tier record.",
    tags=['leaderboard'],
)
@api_view(['GET'])
def leaderboard_user(request, user_ref):
    """Get one user's rank and public tier details."""
    try:
        record = TierLedger().get_record(user_ref)
        row = LeaderboardIndex().entry_for(user_ref)
    except LedgerServiceError as e:
        return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)

    return Response({
        'leaderboard': LeaderboardRowSerializer(row).data,
        'user': TierUserSerializer(record).data,
    })


@extend_schema(
    responses={
        200: UserProfileResponseSerializer,
        404: ErrorSerializer,
    },
    description="A user's tier record: tier, serial number and total spend.",
    tags=['users'],
)
@api_view(['GET'])
def user_detail(request, user_ref):
    """Read-only view of a user's tier record."""
    try:
        record = TierLedger().get_record(user_ref)
    except LedgerServiceError as e:
        return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)

    return Response({'user': UserProfileSerializer(record).data})
