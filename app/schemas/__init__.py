from . import payment, portone, billing_request, webhook_event
from .payment import PaymentCreate, PaymentEntry, PaymentHistoryResponse
from .portone import (
    PortoneWebhookPayload,
    WebhookResponse,
    PaymentInfo,
    PaymentAcceptance,
    ScheduleAck,
    PendingSchedule
)
from .billing_request import PurchaseIntent, CancelRequest, BillingRequestResponse
