from .crud_payment import payment
from .crud_webhook_event import webhook_event
