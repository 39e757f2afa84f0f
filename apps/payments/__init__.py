"""
Payments App - Intent Creation, Verification and Webhooks

Creates gateway payment intents for tier purchases and finalizes them
exactly once, whether the client confirms first or the gateway's webhook
arrives first.

Architecture:
- Models: PaymentIntentRecord, ProcessedWebhookEvent
- Services: PaymentVerifier, WebhookIngestor, StripeGateway
- Views: create-intent, verify, webhook
"""
