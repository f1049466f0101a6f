"""
Attribute Extraction Tests

Each supported constructor input has its own conversion function.
"""
from types import SimpleNamespace

import pytest

from billing_records.errors import RecordNotFound
from billing_records.models.attributes import SubscriptionAttributes
from billing_records.services.extractor import (
    extract, from_identifier, from_mapping, from_remote, known_fields
)
from billing_records.services.gateway import set_gateway


class TestFromIdentifier:

    def test_fetches_remote_subscription(self, gateway, remote_subscription):
        extraction = from_identifier("subscription_id", gateway)

        assert extraction.persisted is True
        assert extraction.remote == remote_subscription
        assert extraction.attributes.plan_id == "plan_id"
        assert gateway.calls == [("find", "subscription_id")]

    def test_unknown_id_raises(self, gateway):
        with pytest.raises(RecordNotFound):
            from_identifier("missing", gateway)

    def test_extract_uses_default_gateway(self, gateway):
        set_gateway(gateway)
        extraction = extract("subscription_id")
        assert extraction.persisted is True


class TestFromRemote:

    def test_copies_known_attributes(self, remote_subscription):
        extraction = from_remote(remote_subscription)

        assert extraction.persisted is True
        assert extraction.remote is remote_subscription
        for name in ("id", "plan_id", "payment_method_token", "price", "current_billing_cycle"):
            assert getattr(extraction.attributes, name) == getattr(remote_subscription, name)

    def test_duck_typed_object_with_persisted_flag(self):
        extraction = from_remote(SimpleNamespace(id="foobar", persisted=True, nickname="ignored"))

        assert extraction.persisted is True
        assert extraction.remote is None
        assert extraction.attributes.id == "foobar"
        assert extraction.source.nickname == "ignored"

    def test_persisted_may_be_a_method(self):
        source = SimpleNamespace(id="foobar", persisted=lambda: True)
        assert from_remote(source).persisted is True

    def test_object_without_known_attributes(self):
        extraction = from_remote(SimpleNamespace())

        assert extraction.persisted is False
        assert extraction.attributes == SubscriptionAttributes()


class TestFromMapping:

    def test_copies_known_keys_only(self):
        extraction = from_mapping({"id": "new_id", "first_name": "ignored", "price": "5"})

        assert extraction.persisted is False
        assert extraction.attributes.id == "new_id"
        assert extraction.attributes.price == "5"
        assert not hasattr(extraction.attributes, "first_name")

    def test_known_fields_accepts_non_string_keys(self):
        assert known_fields({"plan_id": "p", 1: "x"}) == {"plan_id": "p"}


class TestExtract:

    def test_none_gives_empty_new_record(self):
        extraction = extract(None)
        assert extraction.persisted is False
        assert extraction.attributes == SubscriptionAttributes()

    def test_mapping_does_not_touch_gateway(self, gateway):
        extraction = extract({"id": "new_id"}, gateway)
        assert extraction.attributes.id == "new_id"
        assert gateway.calls == []

    def test_string_goes_through_gateway(self, gateway):
        assert extract("subscription_id", gateway).remote.id == "subscription_id"
