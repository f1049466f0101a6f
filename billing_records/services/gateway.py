"""
Payment Gateway Client for billing_records
Defines the gateway contract a Subscription talks to, and binds it to
Stripe through the official SDK.
"""
import logging
from collections.abc import Mapping
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol

import stripe
from dateutil.relativedelta import relativedelta

from billing_records import config
from billing_records.errors import ConfigurationError, GatewayError, RecordNotFound
from billing_records.models.remote import (
    GatewayResult, RemoteAddOn, RemoteCreditCard, RemoteDiscount,
    RemotePlan, RemoteSubscription, RemoteTransaction
)
from billing_records.services.logging_service import log_operation
from billing_records.services.validation import is_blank, is_truthy, parse_date

logger = logging.getLogger(__name__)

# Invoices with these reasons open a new billing cycle
CYCLE_BILLING_REASONS = ("subscription_create", "subscription_cycle")

# Subscription fields Stripe has no column for are kept in metadata
METADATA_FIELDS = ("plan_id", "number_of_billing_cycles", "trial_duration", "trial_duration_unit")


class SubscriptionGateway(Protocol):
    """Contract for the remote store behind Subscription records"""
    
    def find(self, subscription_id: str) -> RemoteSubscription:
        """Fetch a subscription, raising RecordNotFound when it does not exist"""
        ...
    
    def create(self, fields: Dict[str, Any]) -> GatewayResult:
        ...
    
    def update(self, subscription_id: str, fields: Dict[str, Any]) -> GatewayResult:
        ...
    
    def cancel(self, subscription_id: str) -> bool:
        ...
    
    def list_plans(self) -> List[RemotePlan]:
        ...
    
    def find_payment_method(self, token: str) -> RemoteCreditCard:
        ...


def _field(obj: Any, key: str, default: Any = None) -> Any:
    """Read a key from a Stripe object, a plain dict or a bare id"""
    if obj is None or isinstance(obj, str):
        return default
    if isinstance(obj, Mapping):
        value = obj.get(key, default)
    else:
        value = getattr(obj, key, default)
    return default if value is None else value


def _object_id(obj: Any) -> Optional[str]:
    """Stripe returns either an id string or the expanded object"""
    if obj is None or isinstance(obj, str):
        return obj
    return _field(obj, "id")


def _money(cents: Optional[int]) -> Optional[str]:
    if cents is None:
        return None
    return str((Decimal(cents) / 100).quantize(Decimal("0.01")))


def _cents(amount: Any) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1")))


def _to_datetime(timestamp: Optional[int]) -> Optional[datetime]:
    if not timestamp:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def _to_date(timestamp: Optional[int]) -> Optional[date]:
    moment = _to_datetime(timestamp)
    return moment.date() if moment else None


def _optional_int(value: Any) -> Optional[int]:
    if is_blank(value):
        return None
    return int(value)


def _timestamp(day: date) -> int:
    return int(datetime.combine(day, time.min, tzinfo=timezone.utc).timestamp())


def _error_messages(error: stripe.StripeError) -> Dict[str, List[str]]:
    message = getattr(error, "user_message", None) or str(error)
    return {"base": [message]}


def to_remote_add_on(item: Any) -> RemoteAddOn:
    price = _field(item, "price")
    return RemoteAddOn(
        id=_field(item, "id"),
        name=_field(price, "nickname"),
        amount=_money(_field(price, "unit_amount")),
        quantity=_field(item, "quantity", 1),
    )


def to_remote_discount(discount: Any) -> RemoteDiscount:
    if isinstance(discount, str):
        return RemoteDiscount(id=discount)
    coupon = _field(discount, "coupon")
    return RemoteDiscount(
        id=_field(discount, "id"),
        coupon_id=_object_id(coupon),
        name=_field(coupon, "name"),
        amount=_money(_field(coupon, "amount_off")),
        percent_off=_field(coupon, "percent_off"),
    )


def to_remote_transaction(invoice: Any) -> RemoteTransaction:
    return RemoteTransaction(
        id=_field(invoice, "id"),
        amount=_money(_field(invoice, "amount_paid")),
        currency=_field(invoice, "currency"),
        status=_field(invoice, "status"),
        created_at=_to_datetime(_field(invoice, "created")),
    )


def to_remote_plan(plan: Any) -> RemotePlan:
    return RemotePlan(
        id=_field(plan, "id"),
        name=_field(plan, "nickname"),
        price=_money(_field(plan, "amount")),
        currency=_field(plan, "currency"),
        billing_frequency=_field(plan, "interval_count", 1),
        billing_interval=_field(plan, "interval"),
        product_id=_object_id(_field(plan, "product")),
    )


def to_remote_credit_card(payment_method: Any) -> RemoteCreditCard:
    card = _field(payment_method, "card")
    return RemoteCreditCard(
        token=_field(payment_method, "id"),
        customer_id=_object_id(_field(payment_method, "customer")),
        card_type=_field(card, "brand"),
        last_4=_field(card, "last4"),
        expiration_month=_field(card, "exp_month"),
        expiration_year=_field(card, "exp_year"),
    )


def to_remote_subscription(subscription: Any, invoices: List[Any] = ()) -> RemoteSubscription:
    """Convert a Stripe subscription and its invoices into a RemoteSubscription"""
    items = _field(_field(subscription, "items"), "data", [])
    first_item = items[0] if items else None
    price = _field(first_item, "price") or _field(first_item, "plan")
    metadata = dict(_field(subscription, "metadata", {}))
    
    trial_start = _field(subscription, "trial_start")
    trial_end = _field(subscription, "trial_end")
    trial_duration = _optional_int(metadata.get("trial_duration"))
    trial_duration_unit = metadata.get("trial_duration_unit") or None
    if trial_end and trial_start and trial_duration is None:
        trial_duration = (trial_end - trial_start) // 86400
        trial_duration_unit = "day"
    
    # Newer API versions report the billing period on the subscription items
    period_end = _field(subscription, "current_period_end") or _field(first_item, "current_period_end")
    next_billing_date = _to_date(period_end)
    
    current_billing_cycle = sum(
        1 for invoice in invoices
        if _field(invoice, "billing_reason") in CYCLE_BILLING_REASONS and _field(invoice, "status") == "paid"
    )
    
    discounts = list(_field(subscription, "discounts", []))
    if not discounts and _field(subscription, "discount"):
        discounts = [_field(subscription, "discount")]
    
    return RemoteSubscription(
        id=_field(subscription, "id"),
        plan_id=metadata.get("plan_id") or _object_id(price),
        payment_method_token=_object_id(_field(subscription, "default_payment_method")),
        price=_money(_field(price, "unit_amount")),
        status=_field(subscription, "status"),
        billing_day_of_month=_field(_field(subscription, "billing_cycle_anchor_config"), "day_of_month"),
        number_of_billing_cycles=_optional_int(metadata.get("number_of_billing_cycles")),
        current_billing_cycle=current_billing_cycle,
        trial_period=bool(trial_end),
        trial_duration=trial_duration,
        trial_duration_unit=trial_duration_unit,
        first_billing_date=_to_date(_field(subscription, "billing_cycle_anchor")),
        next_billing_date=next_billing_date,
        paid_through_date=next_billing_date - timedelta(days=1) if next_billing_date else None,
        created_at=_to_datetime(_field(subscription, "created")),
        add_ons=[to_remote_add_on(item) for item in items[1:]],
        discounts=[to_remote_discount(discount) for discount in discounts],
        transactions=[to_remote_transaction(invoice) for invoice in invoices],
    )


class StripeSubscriptionGateway:
    """Subscription gateway backed by the Stripe API"""
    
    def __init__(self, api_key: Optional[str] = None, api_version: Optional[str] = None):
        api_key = api_key or config.get_stripe_api_key()
        if not api_key:
            raise ConfigurationError("Payment system not configured. Please add your STRIPE_API_KEY to .env")
        stripe.api_key = api_key
        api_version = api_version or config.get_stripe_api_version()
        if api_version:
            stripe.api_version = api_version
    
    @log_operation("subscription.find")
    def find(self, subscription_id: str) -> RemoteSubscription:
        try:
            subscription = stripe.Subscription.retrieve(subscription_id, expand=["discounts"])
            return self._hydrate(subscription)
        except stripe.InvalidRequestError as e:
            if e.http_status == 404:
                raise RecordNotFound(f"Subscription {subscription_id} not found") from e
            raise GatewayError(str(e), e.http_status) from e
        except stripe.StripeError as e:
            logger.error(f"Stripe subscription lookup failed: {e}")
            raise GatewayError(str(e), e.http_status) from e
    
    @log_operation("subscription.create")
    def create(self, fields: Dict[str, Any]) -> GatewayResult:
        try:
            params = self._create_params(fields)
            subscription = stripe.Subscription.create(**params)
            return GatewayResult.success(self._hydrate(subscription))
        except stripe.InvalidRequestError as e:
            logger.warning(f"Stripe rejected subscription create: {e}")
            return GatewayResult.failure(_error_messages(e))
        except stripe.StripeError as e:
            logger.error(f"Stripe subscription create failed: {e}")
            raise GatewayError(str(e), e.http_status) from e
    
    @log_operation("subscription.update")
    def update(self, subscription_id: str, fields: Dict[str, Any]) -> GatewayResult:
        try:
            current = stripe.Subscription.retrieve(subscription_id)
        except stripe.InvalidRequestError as e:
            if e.http_status == 404:
                raise RecordNotFound(f"Subscription {subscription_id} not found") from e
            raise GatewayError(str(e), e.http_status) from e
        except stripe.StripeError as e:
            raise GatewayError(str(e), e.http_status) from e
        
        try:
            params = self._update_params(current, fields)
            subscription = stripe.Subscription.modify(subscription_id, **params) if params else current
            return GatewayResult.success(self._hydrate(subscription))
        except stripe.InvalidRequestError as e:
            logger.warning(f"Stripe rejected subscription update: {e}")
            return GatewayResult.failure(_error_messages(e))
        except stripe.StripeError as e:
            logger.error(f"Stripe subscription update failed: {e}")
            raise GatewayError(str(e), e.http_status) from e
    
    @log_operation("subscription.cancel")
    def cancel(self, subscription_id: str) -> bool:
        try:
            subscription = stripe.Subscription.cancel(subscription_id)
        except stripe.InvalidRequestError as e:
            if e.http_status == 404:
                raise RecordNotFound(f"Subscription {subscription_id} not found") from e
            raise GatewayError(str(e), e.http_status) from e
        except stripe.StripeError as e:
            logger.error(f"Stripe subscription cancel failed: {e}")
            raise GatewayError(str(e), e.http_status) from e
        return _field(subscription, "status") == "canceled"
    
    @log_operation("plan.list")
    def list_plans(self) -> List[RemotePlan]:
        try:
            return [to_remote_plan(plan) for plan in stripe.Plan.list(limit=100).auto_paging_iter()]
        except stripe.StripeError as e:
            logger.error(f"Stripe plan listing failed: {e}")
            raise GatewayError(str(e), e.http_status) from e
    
    @log_operation("payment_method.find")
    def find_payment_method(self, token: str) -> RemoteCreditCard:
        try:
            return to_remote_credit_card(stripe.PaymentMethod.retrieve(token))
        except stripe.InvalidRequestError as e:
            if e.http_status == 404:
                raise RecordNotFound(f"Payment method {token} not found") from e
            raise GatewayError(str(e), e.http_status) from e
        except stripe.StripeError as e:
            raise GatewayError(str(e), e.http_status) from e
    
    def _hydrate(self, subscription: Any) -> RemoteSubscription:
        invoices = stripe.Invoice.list(subscription=_field(subscription, "id"), limit=100)
        return to_remote_subscription(subscription, list(invoices.auto_paging_iter()))
    
    def _subscription_item(self, plan_id: str, price: Any = None, item_id: Optional[str] = None) -> Dict[str, Any]:
        item: Dict[str, Any] = {"id": item_id} if item_id else {}
        if is_blank(price):
            item["price"] = plan_id
            return item
        # A custom price becomes an ad-hoc price on the plan's product
        plan = stripe.Plan.retrieve(plan_id)
        item["price_data"] = {
            "currency": _field(plan, "currency"),
            "product": _object_id(_field(plan, "product")),
            "unit_amount": _cents(price),
            "recurring": {
                "interval": _field(plan, "interval"),
                "interval_count": _field(plan, "interval_count", 1),
            },
        }
        return item
    
    def _metadata(self, fields: Dict[str, Any]) -> Dict[str, str]:
        # Stripe clears a metadata key when it is set to an empty string
        return {
            key: "" if is_blank(fields[key]) else str(fields[key])
            for key in METADATA_FIELDS
            if key in fields
        }
    
    def _create_params(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        token = fields["payment_method_token"]
        payment_method = stripe.PaymentMethod.retrieve(token)
        customer = _object_id(_field(payment_method, "customer"))
        if not customer:
            raise GatewayError(f"Payment method {token} is not attached to a customer")
        
        params: Dict[str, Any] = {
            "customer": customer,
            "default_payment_method": token,
            "items": [self._subscription_item(fields["plan_id"], fields.get("price"))],
            "metadata": self._metadata(fields),
        }
        if not is_blank(fields.get("id")):
            params["idempotency_key"] = fields["id"]
        
        if is_truthy(fields.get("trial_period")):
            unit = fields["trial_duration_unit"]
            duration = int(fields["trial_duration"])
            delta = relativedelta(months=duration) if unit == "month" else relativedelta(days=duration)
            params["trial_end"] = int((datetime.now(timezone.utc) + delta).timestamp())
        
        first_billing_date = fields.get("first_billing_date")
        if not is_blank(first_billing_date) and parse_date(first_billing_date) > date.today():
            params["billing_cycle_anchor"] = _timestamp(parse_date(first_billing_date))
        elif not is_blank(fields.get("billing_day_of_month")):
            params["billing_cycle_anchor_config"] = {"day_of_month": int(fields["billing_day_of_month"])}
        
        return params
    
    def _update_params(self, current: Any, fields: Dict[str, Any]) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        if "plan_id" in fields or "price" in fields:
            items = _field(_field(current, "items"), "data", [])
            first_item = items[0] if items else None
            metadata = _field(current, "metadata", {})
            plan_id = fields.get("plan_id") or metadata.get("plan_id") or _object_id(_field(first_item, "price"))
            params["items"] = [self._subscription_item(plan_id, fields.get("price"), _field(first_item, "id"))]
        if not is_blank(fields.get("payment_method_token")):
            params["default_payment_method"] = fields["payment_method_token"]
        metadata = self._metadata(fields)
        if metadata:
            params["metadata"] = metadata
        return params


# Singleton instance
_gateway = None

def get_gateway() -> SubscriptionGateway:
    global _gateway
    if _gateway is None:
        _gateway = StripeSubscriptionGateway()
    return _gateway


def set_gateway(gateway: Optional[SubscriptionGateway]) -> None:
    """Replace the process-wide gateway, or reset it with None"""
    global _gateway
    _gateway = gateway
