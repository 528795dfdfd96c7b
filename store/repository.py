"""
Store Backends

Persistence for app records, the device usage ledger, device subscriptions
and push tokens, plus object storage for IPA files and icons.

Two implementations share the StoreBackend interface:
- SupabaseBackend: production, tables + storage buckets via supabase-py
- InMemoryBackend: local development and tests

All backend failures surface as StoreBackendError so callers can decide
whether the operation is primary (fail the request) or secondary (log it).
"""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from threading import Lock
from typing import Optional, List, Dict, Sequence, Any

from config import settings
from store.models import (
    AppRecord,
    AppStatus,
    DeviceUsage,
    SubscriptionRecord,
    format_timestamp,
)
from utils.logger import logger

APPS_TABLE = "apps"
USAGE_TABLE = "developer_device_usage"
SUBSCRIPTIONS_TABLE = "developer_subscriptions"
PUSH_TOKENS_TABLE = "push_tokens"

APP_COLUMNS = (
    "id, name, description, developer_name, version, category, ipa_path, device, "
    "icon_path, social_twitter, social_website, app_store_link, status, created_at, "
    "uploaded_by_device_id"
)

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


class StoreBackendError(Exception):
    """Raised when the storage backend cannot complete a call"""
    pass


class StoreBackend(ABC):
    """Interface every persistence backend implements"""

    # ---- apps ----

    @abstractmethod
    def insert_app(self, app: AppRecord) -> AppRecord:
        """Durably create an app record and return it as stored"""
        pass

    @abstractmethod
    def get_app(self, app_id: str) -> Optional[AppRecord]:
        pass

    @abstractmethod
    def list_apps(
        self,
        statuses: Optional[Sequence[AppStatus]] = None,
        device_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[AppRecord]:
        """Newest first. device_id filters by uploader; statuses by review status."""
        pass

    @abstractmethod
    def delete_app(self, app_id: str) -> bool:
        pass

    # ---- usage ledger ----

    @abstractmethod
    def get_usage(self, device_id: str) -> Optional[DeviceUsage]:
        pass

    @abstractmethod
    def save_usage(self, usage: DeviceUsage) -> None:
        """Upsert keyed by device_id"""
        pass

    def increment_upload_count(self, device_id: str, now: datetime) -> DeviceUsage:
        """
        Read-then-upsert increment of the device's upload count.

        Not atomic: concurrent submissions from the same device may miscount.
        """
        existing = self.get_usage(device_id)
        count = (existing.upload_count if existing else 0) + 1
        usage = DeviceUsage(device_id=device_id, upload_count=count, updated_at=now)
        self.save_usage(usage)
        return usage

    # ---- subscriptions ----

    @abstractmethod
    def get_subscription(self, device_id: str) -> Optional[SubscriptionRecord]:
        pass

    @abstractmethod
    def upsert_subscription(self, record: SubscriptionRecord) -> None:
        """Upsert keyed by device_id (last write wins)"""
        pass

    @abstractmethod
    def update_period_end_by_customer(
        self,
        customer_id: str,
        period_end: datetime,
        updated_at: datetime,
    ) -> int:
        """Overwrite current_period_end on every record for this customer. Returns rows updated."""
        pass

    # ---- push tokens ----

    @abstractmethod
    def list_enabled_push_tokens(self) -> List[str]:
        pass

    @abstractmethod
    def upsert_push_token(self, token: str, enabled: bool, updated_at: datetime) -> None:
        pass

    # ---- object storage ----

    @abstractmethod
    def upload_object(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        """Store bytes at bucket/path (no overwrite). Returns the stored path."""
        pass

    @abstractmethod
    def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        pass


class InMemoryBackend(StoreBackend):
    """Process-local backend. Data is lost on restart."""

    def __init__(self):
        self._lock = Lock()
        self.apps: Dict[str, AppRecord] = {}
        self.usage: Dict[str, DeviceUsage] = {}
        self.subscriptions: Dict[str, SubscriptionRecord] = {}
        self.push_tokens: Dict[str, bool] = {}
        self.objects: Dict[str, Dict[str, bytes]] = {}

    def insert_app(self, app: AppRecord) -> AppRecord:
        with self._lock:
            if app.id in self.apps:
                raise StoreBackendError(f"Duplicate app id: {app.id}")
            self.apps[app.id] = app
        return app

    def get_app(self, app_id: str) -> Optional[AppRecord]:
        return self.apps.get(app_id)

    def list_apps(
        self,
        statuses: Optional[Sequence[AppStatus]] = None,
        device_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[AppRecord]:
        apps = list(self.apps.values())
        if device_id:
            apps = [a for a in apps if a.uploaded_by_device_id == device_id]
        elif statuses:
            wanted = set(statuses)
            apps = [a for a in apps if a.status in wanted]

        apps.sort(key=lambda a: a.created_at or _EPOCH, reverse=True)
        return apps[:limit]

    def delete_app(self, app_id: str) -> bool:
        with self._lock:
            return self.apps.pop(app_id, None) is not None

    def get_usage(self, device_id: str) -> Optional[DeviceUsage]:
        return self.usage.get(device_id)

    def save_usage(self, usage: DeviceUsage) -> None:
        with self._lock:
            self.usage[usage.device_id] = usage

    def get_subscription(self, device_id: str) -> Optional[SubscriptionRecord]:
        return self.subscriptions.get(device_id)

    def upsert_subscription(self, record: SubscriptionRecord) -> None:
        with self._lock:
            self.subscriptions[record.device_id] = record

    def update_period_end_by_customer(
        self,
        customer_id: str,
        period_end: datetime,
        updated_at: datetime,
    ) -> int:
        updated = 0
        with self._lock:
            for record in self.subscriptions.values():
                if record.stripe_customer_id == customer_id:
                    record.current_period_end = period_end
                    record.updated_at = updated_at
                    updated += 1
        return updated

    def list_enabled_push_tokens(self) -> List[str]:
        return [token for token, enabled in self.push_tokens.items() if enabled]

    def upsert_push_token(self, token: str, enabled: bool, updated_at: datetime) -> None:
        with self._lock:
            self.push_tokens[token] = enabled

    def upload_object(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        with self._lock:
            objects = self.objects.setdefault(bucket, {})
            if path in objects:
                raise StoreBackendError(f"Object already exists: {bucket}/{path}")
            objects[path] = data
        return path

    def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        if path not in self.objects.get(bucket, {}):
            raise StoreBackendError(f"Object not found: {bucket}/{path}")
        return f"memory://{bucket}/{path}?expires_in={expires_in}"


class SupabaseBackend(StoreBackend):
    """Supabase tables and storage buckets through the service-role client"""

    def __init__(self, url: Optional[str] = None, service_role_key: Optional[str] = None):
        self.url = url or settings.SUPABASE_URL
        self.service_role_key = service_role_key or settings.SUPABASE_SERVICE_ROLE_KEY
        self._client = None

    @property
    def client(self):
        """Lazily created supabase client"""
        if self._client is None:
            if not self.url or not self.service_role_key:
                raise StoreBackendError(
                    "Supabase is not configured (SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY)"
                )
            from supabase import create_client
            self._client = create_client(self.url, self.service_role_key)
        return self._client

    def _execute(self, description: str, query) -> List[Dict[str, Any]]:
        try:
            response = query.execute()
        except StoreBackendError:
            raise
        except Exception as e:
            logger.error(f"Supabase {description} error: {e}")
            raise StoreBackendError(f"Supabase {description} failed: {e}") from e
        return response.data or []

    def insert_app(self, app: AppRecord) -> AppRecord:
        rows = self._execute(
            "apps insert",
            self.client.table(APPS_TABLE).insert(app.to_row()),
        )
        return AppRecord.from_row(rows[0]) if rows else app

    def get_app(self, app_id: str) -> Optional[AppRecord]:
        try:
            uuid.UUID(str(app_id))
        except ValueError:
            # ids are uuids; anything else cannot match a row
            return None

        rows = self._execute(
            "apps get",
            self.client.table(APPS_TABLE).select(APP_COLUMNS).eq("id", app_id).limit(1),
        )
        return AppRecord.from_row(rows[0]) if rows else None

    def list_apps(
        self,
        statuses: Optional[Sequence[AppStatus]] = None,
        device_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[AppRecord]:
        query = (
            self.client.table(APPS_TABLE)
            .select(APP_COLUMNS)
            .order("created_at", desc=True)
            .limit(limit)
        )
        if device_id:
            query = query.eq("uploaded_by_device_id", device_id)
        elif statuses:
            query = query.in_("status", [s.value for s in statuses])

        rows = self._execute("apps list", query)
        return [AppRecord.from_row(row) for row in rows]

    def delete_app(self, app_id: str) -> bool:
        rows = self._execute(
            "apps delete",
            self.client.table(APPS_TABLE).delete().eq("id", app_id),
        )
        return bool(rows)

    def get_usage(self, device_id: str) -> Optional[DeviceUsage]:
        rows = self._execute(
            "usage get",
            self.client.table(USAGE_TABLE).select("device_id, upload_count, updated_at")
            .eq("device_id", device_id).limit(1),
        )
        return DeviceUsage.from_row(rows[0]) if rows else None

    def save_usage(self, usage: DeviceUsage) -> None:
        self._execute(
            "usage upsert",
            self.client.table(USAGE_TABLE).upsert(usage.to_row(), on_conflict="device_id"),
        )

    def get_subscription(self, device_id: str) -> Optional[SubscriptionRecord]:
        rows = self._execute(
            "subscription get",
            self.client.table(SUBSCRIPTIONS_TABLE)
            .select("device_id, stripe_customer_id, current_period_end, updated_at")
            .eq("device_id", device_id).limit(1),
        )
        return SubscriptionRecord.from_row(rows[0]) if rows else None

    def upsert_subscription(self, record: SubscriptionRecord) -> None:
        self._execute(
            "subscription upsert",
            self.client.table(SUBSCRIPTIONS_TABLE).upsert(record.to_row(), on_conflict="device_id"),
        )

    def update_period_end_by_customer(
        self,
        customer_id: str,
        period_end: datetime,
        updated_at: datetime,
    ) -> int:
        rows = self._execute(
            "subscription update",
            self.client.table(SUBSCRIPTIONS_TABLE)
            .update({
                "current_period_end": format_timestamp(period_end),
                "updated_at": format_timestamp(updated_at),
            })
            .eq("stripe_customer_id", customer_id),
        )
        return len(rows)

    def list_enabled_push_tokens(self) -> List[str]:
        rows = self._execute(
            "push tokens list",
            self.client.table(PUSH_TOKENS_TABLE).select("token").eq("enabled", True),
        )
        return [row["token"] for row in rows if row.get("token")]

    def upsert_push_token(self, token: str, enabled: bool, updated_at: datetime) -> None:
        self._execute(
            "push token upsert",
            self.client.table(PUSH_TOKENS_TABLE).upsert(
                {"token": token, "enabled": enabled, "updated_at": format_timestamp(updated_at)},
                on_conflict="token",
            ),
        )

    def upload_object(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        try:
            self.client.storage.from_(bucket).upload(
                path,
                data,
                {"content-type": content_type, "upsert": "false"},
            )
        except StoreBackendError:
            raise
        except Exception as e:
            logger.error(f"Supabase upload error ({bucket}/{path}): {e}")
            raise StoreBackendError(f"Storage upload failed: {e}") from e
        return path

    def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        try:
            result = self.client.storage.from_(bucket).create_signed_url(path, expires_in)
        except StoreBackendError:
            raise
        except Exception as e:
            raise StoreBackendError(f"Signed URL generation failed: {e}") from e

        signed_url = result.get("signedURL") or result.get("signedUrl")
        if not signed_url:
            raise StoreBackendError(f"Signed URL generation failed for {bucket}/{path}")
        return signed_url


# Singleton instance
_store_backend: Optional[StoreBackend] = None


def get_store_backend() -> StoreBackend:
    """Get or create the configured backend singleton"""
    global _store_backend
    if _store_backend is None:
        backend = settings.STORE_BACKEND.lower()
        if backend == "memory":
            logger.warning("Using in-memory store backend, data will not persist")
            _store_backend = InMemoryBackend()
        elif backend == "supabase":
            _store_backend = SupabaseBackend()
        else:
            raise StoreBackendError(f"Unknown STORE_BACKEND: {settings.STORE_BACKEND}")
    return _store_backend
