"""
Association loading for Subscription records.

Plan and credit card are single remote lookups keyed by a foreign id.
Add-ons, discounts and transactions come embedded in the remote
subscription and are exposed read-only.
"""
import logging
from collections.abc import Sequence
from typing import Any, Iterable, Optional

from billing_records.errors import NotSupportedApiError, RecordNotFound
from billing_records.models.remote import RemoteCreditCard, RemotePlan
from billing_records.services.validation import is_blank

logger = logging.getLogger(__name__)


def load_plan(gateway, plan_id: Optional[str]) -> Optional[RemotePlan]:
    if is_blank(plan_id):
        return None
    for plan in gateway.list_plans():
        if plan.id == plan_id:
            return plan
    raise RecordNotFound(f"Plan {plan_id} not found")


def load_credit_card(gateway, token: Optional[str]) -> Optional[RemoteCreditCard]:
    if is_blank(token):
        return None
    return gateway.find_payment_method(token)


class ReadOnlyCollection(Sequence):
    """Enumerable view of a remote collection that cannot be written through"""
    
    def __init__(self, name: str, items: Iterable[Any] = ()):
        self.name = name
        self._items = tuple(items)
    
    def __getitem__(self, index):
        return self._items[index]
    
    def __len__(self) -> int:
        return len(self._items)
    
    def __repr__(self) -> str:
        return f"ReadOnlyCollection({self.name!r}, {list(self._items)!r})"
    
    @property
    def size(self) -> int:
        return len(self._items)
    
    def _unsupported(self, operation: str):
        logger.debug(f"Rejected {operation} on {self.name}")
        raise NotSupportedApiError(f"Cannot {operation} {self.name} through a subscription")
    
    def create(self, *args, **kwargs):
        self._unsupported("create")
    
    def build(self, *args, **kwargs):
        self._unsupported("build")
    
    def append(self, item):
        self._unsupported("append")
