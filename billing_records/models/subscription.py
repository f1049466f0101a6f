"""
Subscription record.

Wraps a payment gateway subscription with validation, persistence and
lazily loaded associations.
"""
import logging
from collections.abc import Mapping
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.hybrid import hybrid_method

from billing_records.errors import RecordDestroyed, RecordInvalid
from billing_records.models.attributes import (
    ATTRIBUTE_NAMES, UPDATABLE_ATTRIBUTES, WRITABLE_ATTRIBUTES
)
from billing_records.models.remote import (
    GatewayResult, RemoteCreditCard, RemotePlan, RemoteSubscription
)
from billing_records.services.associations import (
    ReadOnlyCollection, load_credit_card, load_plan
)
from billing_records.services.extractor import extract, from_remote, known_fields
from billing_records.services.gateway import SubscriptionGateway, get_gateway
from billing_records.services.validation import is_blank, validate

logger = logging.getLogger(__name__)


class _Attribute:
    """Proxies one field of the record's SubscriptionAttributes"""

    def __init__(self, resets: Optional[str] = None, readonly: bool = False):
        self.resets = resets
        self.readonly = readonly

    def __set_name__(self, owner, name):
        self.name = name

    def __get__(self, obj, owner=None):
        if obj is None:
            return self
        return getattr(obj._attributes, self.name)

    def __set__(self, obj, value):
        if self.readonly:
            raise AttributeError(f"{self.name} is reported by the gateway and cannot be set")
        setattr(obj._attributes, self.name, value)
        if self.resets:
            obj._reset_association(self.resets)


class Subscription:
    """
    A recurring billing subscription held by the payment gateway.

    Construct it from a subscription id (looked up remotely), from a
    remote subscription object, or from field values for a new record:

        Subscription("sub_123")
        Subscription(remote_subscription)
        Subscription(plan_id="basic", payment_method_token="pm_123")
    """

    attributes = ATTRIBUTE_NAMES

    id = _Attribute()
    plan_id = _Attribute(resets="plan")
    payment_method_token = _Attribute(resets="credit_card")
    price = _Attribute()
    billing_day_of_month = _Attribute()
    number_of_billing_cycles = _Attribute()
    trial_period = _Attribute()
    trial_duration = _Attribute()
    trial_duration_unit = _Attribute()
    first_billing_date = _Attribute()
    current_billing_cycle = _Attribute(readonly=True)
    status = _Attribute(readonly=True)
    balance = _Attribute(readonly=True)
    next_billing_date = _Attribute(readonly=True)
    paid_through_date = _Attribute(readonly=True)
    created_at = _Attribute(readonly=True)
    updated_at = _Attribute(readonly=True)

    def __init__(self, source: Any = None, gateway: Optional[SubscriptionGateway] = None, **fields):
        self._gateway = gateway
        if fields:
            if source is None:
                source = fields
            elif isinstance(source, Mapping):
                source = {**source, **fields}
            else:
                raise TypeError(
                    f"Keyword fields can only be combined with a mapping, not {type(source).__name__}"
                )
        extraction = extract(source, gateway)
        self._attributes = extraction.attributes
        self._persisted = extraction.persisted
        self._remote: Optional[RemoteSubscription] = extraction.remote
        self._source = extraction.source
        self._persisted_id = self.id if self._persisted else None
        self._destroyed = False
        self.errors: Dict[str, List[str]] = {}
        self._reset_association("plan")
        self._reset_association("credit_card")

    def __repr__(self) -> str:
        state = "persisted" if self.persisted else ("destroyed" if self.destroyed else "new")
        return f"<Subscription id={self.id!r} plan_id={self.plan_id!r} {state}>"

    @property
    def gateway(self) -> SubscriptionGateway:
        return self._gateway or get_gateway()

    @property
    def persisted(self) -> bool:
        return self._persisted and not self._destroyed

    @property
    def new_record(self) -> bool:
        return not self._persisted and not self._destroyed

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def never_expires(self) -> bool:
        return is_blank(self.number_of_billing_cycles)

    def to_dict(self) -> Dict[str, Any]:
        return self._attributes.model_dump()

    # ==================== VALIDATION ====================

    def is_valid(self) -> bool:
        """Run validations, replacing `errors`"""
        self.errors = validate(self._attributes.model_dump(), self.new_record)
        return not self.errors

    # ==================== PERSISTENCE ====================

    def save(self) -> bool:
        """Create or update the subscription remotely; False when invalid"""
        self._ensure_not_destroyed()
        if not self.is_valid():
            logger.info(f"Subscription {self.id or '(new)'} not saved: {sorted(self.errors)} invalid")
            return False

        if self.new_record:
            result = self.gateway.create(self._create_fields())
        else:
            result = self.gateway.update(self._persisted_id, self._changed_fields())
        return self._apply_result(result)

    def save_or_raise(self) -> bool:
        """Like save(), but raises RecordInvalid instead of returning False"""
        if not self.save():
            raise RecordInvalid(self, self.errors)
        return True

    def update_attributes(self, **fields) -> bool:
        self._ensure_not_destroyed()
        self._assign(fields)
        return self.save()

    def update_attributes_or_raise(self, **fields) -> bool:
        self._ensure_not_destroyed()
        self._assign(fields)
        return self.save_or_raise()

    def reload(self) -> "Subscription":
        """Refetch the subscription and drop cached associations"""
        self._ensure_not_destroyed()
        remote = self.gateway.find(self._persisted_id or self.id)
        self._attributes = from_remote(remote).attributes
        self._remote = self._source = remote
        self._persisted = True
        self._persisted_id = remote.id
        self._reset_association("plan")
        self._reset_association("credit_card")
        return self

    @hybrid_method
    def cancel(self) -> bool:
        """Cancel this subscription remotely; the record cannot be saved afterwards"""
        self._ensure_not_destroyed()
        if self.new_record:
            return False
        cancelled = self.gateway.cancel(self._persisted_id)
        if not cancelled:
            logger.warning(f"Gateway did not cancel subscription {self._persisted_id}")
            return cancelled
        self._destroyed = True
        logger.info(f"Subscription {self._persisted_id} cancelled")
        return cancelled

    @cancel.expression
    def cancel(cls, subscription_id: str, gateway: Optional[SubscriptionGateway] = None) -> bool:
        """Cancel a subscription by id without loading it first"""
        cancelled = (gateway or get_gateway()).cancel(subscription_id)
        logger.info(f"Subscription {subscription_id} cancelled")
        return cancelled

    def destroy(self) -> bool:
        return self.cancel()

    @classmethod
    def delete(cls, subscription_id: str, gateway: Optional[SubscriptionGateway] = None) -> bool:
        return cls.cancel(subscription_id, gateway=gateway)

    # ==================== ASSOCIATIONS ====================

    @property
    def plan(self) -> Optional[RemotePlan]:
        if not self._plan_loaded:
            self._plan = load_plan(self.gateway, self.plan_id)
            self._plan_loaded = True
        return self._plan

    @property
    def credit_card(self) -> Optional[RemoteCreditCard]:
        if not self._credit_card_loaded:
            self._credit_card = load_credit_card(self.gateway, self.payment_method_token)
            self._credit_card_loaded = True
        return self._credit_card

    @property
    def add_ons(self) -> ReadOnlyCollection:
        return ReadOnlyCollection("add_ons", self._collection("add_ons"))

    @property
    def discounts(self) -> ReadOnlyCollection:
        return ReadOnlyCollection("discounts", self._collection("discounts"))

    @property
    def transactions(self) -> ReadOnlyCollection:
        return ReadOnlyCollection("transactions", self._collection("transactions"))

    # ==================== INTERNALS ====================

    def _reset_association(self, name: str):
        setattr(self, f"_{name}", None)
        setattr(self, f"_{name}_loaded", False)

    def _collection(self, name: str):
        return getattr(self._source, name, None) or ()

    def _ensure_not_destroyed(self):
        if self._destroyed:
            raise RecordDestroyed(f"Subscription {self.id} has been cancelled")

    def _assign(self, fields: Dict[str, Any]):
        for name, value in known_fields(fields).items():
            if name == "id" and not self.new_record:
                continue
            if name in WRITABLE_ATTRIBUTES:
                setattr(self, name, value)

    def _create_fields(self) -> Dict[str, Any]:
        return {
            name: getattr(self, name)
            for name in WRITABLE_ATTRIBUTES
            if not is_blank(getattr(self, name))
        }

    def _changed_fields(self) -> Dict[str, Any]:
        if self._remote is None:
            return {
                name: getattr(self, name)
                for name in UPDATABLE_ATTRIBUTES
                if not is_blank(getattr(self, name))
            }
        return {
            name: getattr(self, name)
            for name in UPDATABLE_ATTRIBUTES
            if getattr(self, name) != getattr(self._remote, name)
        }

    def _apply_result(self, result: GatewayResult) -> bool:
        if not result.is_success:
            for field, messages in result.errors.items():
                self.errors.setdefault(field, []).extend(messages)
            logger.warning(f"Gateway rejected subscription {self.id or '(new)'}: {result.errors}")
            return False

        remote = result.subscription
        reported = {
            name: value
            for name, value in from_remote(remote).attributes.model_dump().items()
            if value is not None
        }
        self._attributes = self._attributes.model_copy(update=reported)
        self._remote = self._source = remote
        self._persisted = True
        self._persisted_id = remote.id
        self._reset_association("plan")
        self._reset_association("credit_card")
        logger.info(f"Subscription {self.id} saved")
        return True
