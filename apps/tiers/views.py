from rest_framework.decorators import api_view
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema
from .catalog import all_tiers
from .serializers import TierSerializer, TierListResponseSerializer


@extend_schema(
    responses={200: TierListResponseSerializer},
    description="List purchasable tiers, cheapest first. Prices are in cents.",
    tags=['tiers'],
)
@api_view(['GET'])
def tier_list(request):
    return Response({
        'tiers': TierSerializer(all_tiers(), many=True).data,
    })
