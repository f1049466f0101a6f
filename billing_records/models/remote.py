from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict
from datetime import date, datetime


class RemoteAddOn(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)
    
    id: str
    name: Optional[str] = None
    amount: Optional[str] = None
    quantity: int = 1


class RemoteDiscount(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)
    
    id: str
    coupon_id: Optional[str] = None
    name: Optional[str] = None
    amount: Optional[str] = None
    percent_off: Optional[float] = None


class RemoteTransaction(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)
    
    id: str
    amount: Optional[str] = None
    currency: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[datetime] = None


class RemotePlan(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)
    
    id: str
    name: Optional[str] = None
    price: Optional[str] = None
    currency: Optional[str] = None
    billing_frequency: int = 1
    billing_interval: Optional[str] = None
    product_id: Optional[str] = None


class RemoteCreditCard(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)
    
    token: str
    customer_id: Optional[str] = None
    card_type: Optional[str] = None
    last_4: Optional[str] = None
    expiration_month: Optional[int] = None
    expiration_year: Optional[int] = None


class RemoteSubscription(BaseModel):
    """A subscription as the payment gateway last reported it"""
    model_config = ConfigDict(extra="ignore", frozen=True)
    
    id: str
    plan_id: Optional[str] = None
    payment_method_token: Optional[str] = None
    price: Optional[str] = None
    status: Optional[str] = None
    balance: Optional[str] = None
    billing_day_of_month: Optional[int] = None
    number_of_billing_cycles: Optional[int] = None
    current_billing_cycle: Optional[int] = None
    trial_period: bool = False
    trial_duration: Optional[int] = None
    trial_duration_unit: Optional[str] = None
    first_billing_date: Optional[date] = None
    next_billing_date: Optional[date] = None
    paid_through_date: Optional[date] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    add_ons: List[RemoteAddOn] = Field(default_factory=list)
    discounts: List[RemoteDiscount] = Field(default_factory=list)
    transactions: List[RemoteTransaction] = Field(default_factory=list)
    
    @property
    def persisted(self) -> bool:
        return True
    
    @property
    def never_expires(self) -> bool:
        return self.number_of_billing_cycles is None


class GatewayResult(BaseModel):
    """Outcome of a create or update call"""
    model_config = ConfigDict(frozen=True)
    
    is_success: bool
    subscription: Optional[RemoteSubscription] = None
    errors: Dict[str, List[str]] = Field(default_factory=dict)
    
    @classmethod
    def success(cls, subscription: RemoteSubscription) -> "GatewayResult":
        return cls(is_success=True, subscription=subscription)
    
    @classmethod
    def failure(cls, errors: Dict[str, List[str]]) -> "GatewayResult":
        return cls(is_success=False, errors=errors)
