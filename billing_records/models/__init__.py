from .remote import (
    RemoteSubscription, RemotePlan, RemoteCreditCard,
    RemoteAddOn, RemoteDiscount, RemoteTransaction, GatewayResult
)
from .attributes import SubscriptionAttributes, ATTRIBUTE_NAMES
from .subscription import Subscription
