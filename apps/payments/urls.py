from django.urls import path
from . import views

app_name = 'payments'

urlpatterns = [
    # POST /payments/create-intent           - Start a tier purchase
    path('create-intent', views.create_intent, name='create-intent'),

    # POST /payments/verify/{paymentIntentId} - Confirm and upgrade
    path('verify/<str:intent_id>', views.verify_intent, name='verify'),

    # POST /payments/webhook                 - Stripe events
    path('webhook', views.webhook, name='webhook'),
]
