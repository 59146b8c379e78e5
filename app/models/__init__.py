# flake8: noqa
from .enums import PaymentStatus, WebhookPaymentStatus, WebhookEventStatus
from .payment import Payment
from .webhook_event import WebhookEvent
