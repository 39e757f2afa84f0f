import logging

from rest_framework.decorators import api_view
from rest_framework.response import Response
from rest_framework import status
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes
from .serializers import (
    # Input serializers
    CreateIntentInputSerializer,
    VerifyIntentInputSerializer,
    # Response serializers
    CreateIntentResponseSerializer,
    VerifyIntentResponseSerializer,
    PaymentNotCompletedSerializer,
    WebhookResponseSerializer,
    ErrorSerializer,
)
from .services import (
    PaymentVerifier,
    WebhookIngestor,
    UnknownTier,
    IntentNotFound,
    IntentOwnershipMismatch,
    GatewayUnavailable,
    InvalidSignature,
)

logger = logging.getLogger(__name__)


@extend_schema(
    request=CreateIntentInputSerializer,
    responses={
        200: CreateIntentResponseSerializer,
        400: ErrorSerializer,
        503: ErrorSerializer,
    },
    description="Create a gateway payment intent for the price of a tier.",
    tags=['payments'],
)
@api_view(['POST'])
def create_intent(request):
    """Start a tier purchase - thin HTTP handler."""
    serializer = CreateIntentInputSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    try:
        created = PaymentVerifier().create_intent(
            tier_id=data['tier'],
            user_ref=data['userId'],
            email=data.get('email', ''),
            username=data.get('username', ''),
        )
    except UnknownTier as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except GatewayUnavailable as e:
        return Response({'error': str(e)}, status=status.HTTP_503_SERVICE_UNAVAILABLE)

    return Response({
        'clientSecret': created.client_secret,
        'paymentIntentId': created.intent_id,
        'amount': created.amount_minor,
        'currency': created.currency,
    })


@extend_schema(
    request=VerifyIntentInputSerializer,
    parameters=[
        OpenApiParameter('intent_id', OpenApiTypes.STR, OpenApiParameter.PATH, description='Gateway payment intent id'),
    ],
    responses={
        200: VerifyIntentResponseSerializer,
        400: PaymentNotCompletedSerializer,
        403: ErrorSerializer,
        404: ErrorSerializer,
        503: ErrorSerializer,
    },
    description="Confirm a payment with the gateway and upgrade the user's tier.",
    tags=['payments'],
)
@api_view(['POST'])
def verify_intent(request, intent_id):
    """Verify a payment after the client-side confirmation."""
    serializer = VerifyIntentInputSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        confirmation = PaymentVerifier().confirm_intent(
            intent_id=intent_id,
            user_ref=serializer.validated_data['userId'],
        )
    except IntentNotFound as e:
        return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
    except IntentOwnershipMismatch as e:
        return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
    except GatewayUnavailable as e:
        return Response({'error': str(e)}, status=status.HTTP_503_SERVICE_UNAVAILABLE)

    if not confirmation.verified:
        return Response(
            {
                'error': 'Payment not completed',
                'status': confirmation.gateway_status or confirmation.status,
            },
            status=status.HTTP_400_BAD_REQUEST
        )

    return Response({
        'userId': confirmation.user_ref,
        'tier': confirmation.tier,
        'verified': True,
        'amount': confirmation.amount_minor,
    })


@extend_schema(
    request={'application/json': OpenApiTypes.OBJECT},
    parameters=[
        OpenApiParameter('Stripe-Signature', OpenApiTypes.STR, OpenApiParameter.HEADER, required=True),
    ],
    responses={
        200: WebhookResponseSerializer,
        400: ErrorSerializer,
    },
    description="Receive signed payment events from Stripe.",
    tags=['payments'],
)
@api_view(['POST'])
def webhook(request):
    """Stripe webhook endpoint. Reads the raw body; never parses request.data."""
    try:
        result = WebhookIngestor().handle_event(
            request.body,
            request.headers.get('Stripe-Signature'),
        )
    except InvalidSignature as e:
        logger.warning(f"Rejected webhook: {e}")
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    body = {'received': True, 'event': result.event_type}
    if result.duplicate:
        body['duplicate'] = True
    return Response(body)
