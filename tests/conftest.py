"""
Shared fixtures for billing_records tests.

`InMemoryGateway` honours the SubscriptionGateway contract without any
network access and records every call it receives.
"""
from datetime import date, datetime, timezone

import pytest

from billing_records.errors import RecordNotFound
from billing_records.models.remote import (
    GatewayResult, RemoteAddOn, RemoteCreditCard, RemoteDiscount,
    RemotePlan, RemoteSubscription, RemoteTransaction
)
from billing_records.services.gateway import set_gateway


class InMemoryGateway:
    """Subscription gateway keeping everything in dictionaries"""
    
    def __init__(self, subscriptions=(), plans=(), payment_methods=()):
        self.subscriptions = {subscription.id: subscription for subscription in subscriptions}
        self.plans = list(plans)
        self.payment_methods = {card.token: card for card in payment_methods}
        self.calls = []
        self.reject_with = None
        self._next_id = 1
    
    def call_names(self):
        return [name for name, _ in self.calls]
    
    def find(self, subscription_id):
        self.calls.append(("find", subscription_id))
        if subscription_id not in self.subscriptions:
            raise RecordNotFound(f"Subscription {subscription_id} not found")
        return self.subscriptions[subscription_id]
    
    def create(self, fields):
        self.calls.append(("create", dict(fields)))
        if self.reject_with:
            return GatewayResult.failure(self.reject_with)
        subscription_id = fields.get("id") or f"sub_{self._next_id}"
        self._next_id += 1
        cycles = fields.get("number_of_billing_cycles")
        remote = RemoteSubscription(
            id=subscription_id,
            plan_id=fields["plan_id"],
            payment_method_token=fields["payment_method_token"],
            price=str(fields["price"]) if "price" in fields else "10.00",
            status="active",
            number_of_billing_cycles=int(cycles) if cycles is not None else None,
            current_billing_cycle=1,
            created_at=datetime.now(timezone.utc),
        )
        self.subscriptions[subscription_id] = remote
        return GatewayResult.success(remote)
    
    def update(self, subscription_id, fields):
        self.calls.append(("update", subscription_id, dict(fields)))
        if self.reject_with:
            return GatewayResult.failure(self.reject_with)
        existing = self.subscriptions[subscription_id]
        changes = {key: str(value) if key == "price" else value for key, value in fields.items()}
        remote = existing.model_copy(update=changes)
        self.subscriptions[subscription_id] = remote
        return GatewayResult.success(remote)
    
    def cancel(self, subscription_id):
        self.calls.append(("cancel", subscription_id))
        if subscription_id not in self.subscriptions:
            raise RecordNotFound(f"Subscription {subscription_id} not found")
        self.subscriptions[subscription_id] = self.subscriptions[subscription_id].model_copy(
            update={"status": "canceled"}
        )
        return True
    
    def list_plans(self):
        self.calls.append(("list_plans", None))
        return list(self.plans)
    
    def find_payment_method(self, token):
        self.calls.append(("find_payment_method", token))
        if token not in self.payment_methods:
            raise RecordNotFound(f"Payment method {token} not found")
        return self.payment_methods[token]


@pytest.fixture
def remote_subscription():
    return RemoteSubscription(
        id="subscription_id",
        plan_id="plan_id",
        payment_method_token="credit_card_id",
        price="10.00",
        status="active",
        billing_day_of_month=1,
        number_of_billing_cycles=12,
        current_billing_cycle=2,
        first_billing_date=date(2020, 1, 1),
        next_billing_date=date(2020, 3, 1),
        add_ons=[
            RemoteAddOn(id="si_addon_1", name="Extra seat", amount="5.00", quantity=2),
            RemoteAddOn(id="si_addon_2", name="Support", amount="15.00"),
        ],
        discounts=[RemoteDiscount(id="di_1", coupon_id="WELCOME", percent_off=10.0)],
        transactions=[RemoteTransaction(id="in_1", amount="10.00", currency="usd", status="paid")],
    )


@pytest.fixture
def plans():
    return [
        RemotePlan(id="other_plan", name="Other", price="5.00", currency="usd", billing_interval="month"),
        RemotePlan(id="plan_id", name="Basic", price="10.00", currency="usd", billing_interval="month"),
    ]


@pytest.fixture
def credit_card():
    return RemoteCreditCard(
        token="credit_card_id",
        customer_id="cus_1",
        card_type="visa",
        last_4="4242",
        expiration_month=12,
        expiration_year=2030,
    )


@pytest.fixture
def gateway(remote_subscription, plans, credit_card):
    return InMemoryGateway(
        subscriptions=[remote_subscription],
        plans=plans,
        payment_methods=[credit_card],
    )


@pytest.fixture(autouse=True)
def reset_default_gateway():
    """Keep the process-wide gateway from leaking between tests"""
    set_gateway(None)
    yield
    set_gateway(None)


@pytest.fixture
def subscription_fields():
    return {
        "plan_id": "plan_id",
        "payment_method_token": "credit_card_id",
        "price": "10.00",
        "number_of_billing_cycles": 12,
    }
