"""
Attribute extraction for Subscription records.

A Subscription can be built from a subscription id, from an object the
gateway already returned, or from a mapping of field values. Each shape
has its own conversion function; `extract()` picks one.
"""
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, Optional

from billing_records.models.attributes import ATTRIBUTE_NAMES, SubscriptionAttributes
from billing_records.models.remote import RemoteSubscription
from billing_records.services.gateway import get_gateway


@dataclass
class Extraction:
    attributes: SubscriptionAttributes
    persisted: bool = False
    remote: Optional[RemoteSubscription] = None
    source: Any = None


def known_fields(fields: Mapping) -> Dict[str, Any]:
    """Keep only the entries naming a Subscription attribute"""
    return {str(key): value for key, value in fields.items() if str(key) in ATTRIBUTE_NAMES}


def from_identifier(subscription_id: str, gateway) -> Extraction:
    """Look the subscription up remotely; RecordNotFound propagates"""
    remote = gateway.find(subscription_id)
    return Extraction(
        attributes=from_remote(remote).attributes, persisted=True, remote=remote, source=remote
    )


def from_remote(source: Any) -> Extraction:
    values = {name: getattr(source, name) for name in ATTRIBUTE_NAMES if hasattr(source, name)}
    persisted = getattr(source, "persisted", False)
    if callable(persisted):
        persisted = persisted()
    return Extraction(
        attributes=SubscriptionAttributes(**values),
        persisted=bool(persisted),
        remote=source if isinstance(source, RemoteSubscription) else None,
        source=source,
    )


def from_mapping(fields: Mapping) -> Extraction:
    return Extraction(attributes=SubscriptionAttributes(**known_fields(fields)))


def extract(source: Any, gateway=None) -> Extraction:
    """
    Normalize constructor input into attributes plus persisted state.
    
    Args:
        source: Subscription id, remote subscription object, field mapping or None
        gateway: Gateway used for id lookups, defaults to the process-wide one
    """
    if source is None:
        return Extraction(attributes=SubscriptionAttributes())
    if isinstance(source, str):
        return from_identifier(source, gateway or get_gateway())
    if isinstance(source, Mapping):
        return from_mapping(source)
    return from_remote(source)
