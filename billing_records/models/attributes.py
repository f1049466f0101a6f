from pydantic import BaseModel, ConfigDict
from typing import Any

# Attributes a caller may set and send to the gateway
WRITABLE_ATTRIBUTES = (
    "id",
    "plan_id",
    "payment_method_token",
    "price",
    "billing_day_of_month",
    "number_of_billing_cycles",
    "trial_period",
    "trial_duration",
    "trial_duration_unit",
    "first_billing_date",
)

# Attributes the gateway accepts on an existing subscription
UPDATABLE_ATTRIBUTES = (
    "plan_id",
    "payment_method_token",
    "price",
    "number_of_billing_cycles",
)

# Attributes only ever reported by the gateway
READONLY_ATTRIBUTES = (
    "current_billing_cycle",
    "status",
    "balance",
    "next_billing_date",
    "paid_through_date",
    "created_at",
    "updated_at",
)

ATTRIBUTE_NAMES = WRITABLE_ATTRIBUTES + READONLY_ATTRIBUTES


class SubscriptionAttributes(BaseModel):
    """
    Raw attribute values of a Subscription.
    
    Values are kept exactly as supplied so that validation can report
    on them; nothing is coerced here.
    """
    model_config = ConfigDict(extra="ignore", arbitrary_types_allowed=True)
    
    id: Any = None
    plan_id: Any = None
    payment_method_token: Any = None
    price: Any = None
    billing_day_of_month: Any = None
    number_of_billing_cycles: Any = None
    trial_period: Any = None
    trial_duration: Any = None
    trial_duration_unit: Any = None
    first_billing_date: Any = None
    current_billing_cycle: Any = None
    status: Any = None
    balance: Any = None
    next_billing_date: Any = None
    paid_through_date: Any = None
    created_at: Any = None
    updated_at: Any = None
