#!/usr/bin/env python3
"""
Store Backend Tests

Row mapping, the in-memory backend and the Supabase backend against a
mocked supabase_client.
"""

import sys
import os
import uuid
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from store.models import (
    AppRecord,
    AppCategory,
    AppStatus,
    DeviceCompatibility,
    DeviceUsage,
    SubscriptionRecord,
    parse_timestamp,
    format_timestamp,
)
from store.repository import SupabaseBackend, StoreBackendError
from tests.conftest import START_TIME


class TestTimestamps:

    @pytest.mark.parametrize("value", [
        "2026-01-15T12:00:00Z",
        "2026-01-15T12:00:00+00:00",
        "2026-01-15T13:00:00+01:00",
        "2026-01-15T12:00:00",
        1768478400,
        START_TIME,
    ])
    def test_parse(self, value):
        assert parse_timestamp(value) == START_TIME

    @pytest.mark.parametrize("value", [None, "", "yesterday"])
    def test_parse_empty_or_invalid(self, value):
        assert parse_timestamp(value) is None

    def test_format(self):
        assert format_timestamp(START_TIME) == "2026-01-15T12:00:00Z"
        assert format_timestamp(None) is None


class TestRowMapping:

    def test_app_round_trip(self):
        app = AppRecord(
            name="Delta",
            developer_name="Yoshi",
            version="1.0",
            category=AppCategory.GAMES,
            ipa_path="1-delta.ipa",
            device=DeviceCompatibility.IPHONE,
            uploaded_by_device_id="device-1",
            created_at=START_TIME,
        )
        assert AppRecord.from_row(app.to_row()) == app

    def test_app_row_with_unexpected_values(self):
        app = AppRecord.from_row({
            "id": "1",
            "name": "Odd",
            "developer_name": "Dev",
            "version": "1",
            "category": "productivity",
            "device": None,
            "status": "rejected",
            "created_at": None,
        })
        assert app.category == AppCategory.UTILITIES
        assert app.device == DeviceCompatibility.BOTH
        assert app.status == AppStatus.PENDING
        assert app.created_at is None

    def test_subscription_row(self):
        record = SubscriptionRecord.from_row({
            "device_id": "device-1",
            "stripe_customer_id": "cus_1",
            "current_period_end": "2026-02-14T12:00:00Z",
        })
        assert record.is_active(START_TIME)
        assert not record.is_active(START_TIME + timedelta(days=30))

    def test_usage_row(self):
        assert DeviceUsage.from_row({"device_id": "d", "upload_count": None}).upload_count == 0


class TestInMemoryBackend:

    def test_increment_upload_count(self, backend):
        backend.increment_upload_count("device-1", START_TIME)
        usage = backend.increment_upload_count("device-1", START_TIME)
        assert usage.upload_count == 2
        assert backend.get_usage("device-1").upload_count == 2

    def test_objects_are_not_overwritten(self, backend):
        backend.upload_object("ipa-files", "a.ipa", b"1", "application/octet-stream")
        with pytest.raises(StoreBackendError):
            backend.upload_object("ipa-files", "a.ipa", b"2", "application/octet-stream")

    def test_update_period_end_by_customer(self, backend):
        backend.upsert_subscription(SubscriptionRecord(device_id="d1", stripe_customer_id="cus_1"))
        backend.upsert_subscription(SubscriptionRecord(device_id="d2", stripe_customer_id="cus_2"))

        assert backend.update_period_end_by_customer("cus_1", START_TIME, START_TIME) == 1
        assert backend.get_subscription("d1").current_period_end == START_TIME
        assert backend.get_subscription("d2").current_period_end is None


class TestSupabaseBackend:
    """SupabaseBackend with the supabase supabase_client mocked"""

    @pytest.fixture
    def supabase_client(self):
        return MagicMock()

    @pytest.fixture
    def supabase(self, supabase_client):
        backend = SupabaseBackend(url="https://project.supabase.co", service_role_key="service-role")
        backend._client = supabase_client
        return backend

    def test_not_configured(self):
        backend = SupabaseBackend()
        backend.url = None
        backend.service_role_key = None
        with pytest.raises(StoreBackendError):
            backend.get_usage("device-1")

    def test_get_app_ignores_non_uuid(self, supabase, supabase_client):
        assert supabase.get_app("not-a-uuid") is None
        supabase_client.table.assert_not_called()

    def test_get_app(self, supabase, supabase_client):
        app_id = str(uuid.uuid4())
        query = supabase_client.table.return_value.select.return_value.eq.return_value.limit.return_value
        query.execute.return_value = MagicMock(data=[{
            "id": app_id,
            "name": "Delta",
            "developer_name": "Yoshi",
            "version": "1.0",
            "category": "games",
            "ipa_path": "1-delta.ipa",
            "status": "approved",
            "created_at": "2026-01-15T12:00:00Z",
        }])

        app = supabase.get_app(app_id)

        supabase_client.table.assert_called_with("apps")
        assert app.id == app_id
        assert app.status == AppStatus.APPROVED
        assert app.created_at == START_TIME

    def test_query_errors_are_wrapped(self, supabase, supabase_client):
        query = supabase_client.table.return_value.select.return_value.eq.return_value.limit.return_value
        query.execute.side_effect = RuntimeError("connection reset")

        with pytest.raises(StoreBackendError):
            supabase.get_usage("device-1")

    def test_upsert_subscription(self, supabase, supabase_client):
        record = SubscriptionRecord(
            device_id="device-1",
            stripe_customer_id="cus_1",
            current_period_end=START_TIME,
            updated_at=START_TIME,
        )

        supabase.upsert_subscription(record)

        supabase_client.table.assert_called_with("developer_subscriptions")
        supabase_client.table.return_value.upsert.assert_called_once_with(record.to_row(), on_conflict="device_id")

    def test_update_period_end_counts_rows(self, supabase, supabase_client):
        query = supabase_client.table.return_value.update.return_value.eq.return_value
        query.execute.return_value = MagicMock(data=[{"device_id": "d1"}, {"device_id": "d2"}])

        assert supabase.update_period_end_by_customer("cus_1", START_TIME, START_TIME) == 2
        supabase_client.table.return_value.update.assert_called_once_with({
            "current_period_end": "2026-01-15T12:00:00Z",
            "updated_at": "2026-01-15T12:00:00Z",
        })
        supabase_client.table.return_value.update.return_value.eq.assert_called_once_with("stripe_customer_id", "cus_1")

    @pytest.mark.parametrize("key", ["signedURL", "signedUrl"])
    def test_signed_url(self, supabase, supabase_client, key):
        supabase_client.storage.from_.return_value.create_signed_url.return_value = {key: "https://signed"}
        assert supabase.create_signed_url("ipa-files", "a.ipa", 3600) == "https://signed"
        supabase_client.storage.from_.return_value.create_signed_url.assert_called_once_with("a.ipa", 3600)

    def test_signed_url_missing(self, supabase, supabase_client):
        supabase_client.storage.from_.return_value.create_signed_url.return_value = {}
        with pytest.raises(StoreBackendError):
            supabase.create_signed_url("ipa-files", "a.ipa", 3600)

    def test_upload_error_wrapped(self, supabase, supabase_client):
        supabase_client.storage.from_.return_value.upload.side_effect = RuntimeError("Duplicate")
        with pytest.raises(StoreBackendError):
            supabase.upload_object("ipa-files", "a.ipa", b"ipa", "application/octet-stream")
