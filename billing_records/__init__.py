"""
billing_records: active-record style subscriptions on top of a payment gateway.
"""
from .errors import (
    BillingRecordsError, ConfigurationError, GatewayError, NotSupportedApiError,
    RecordDestroyed, RecordInvalid, RecordNotFound
)
from .models import Subscription, SubscriptionAttributes
from .services.gateway import StripeSubscriptionGateway, SubscriptionGateway, get_gateway, set_gateway

__version__ = "1.0.0"
