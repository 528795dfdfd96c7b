"""
Store Data Models

Core data structures for the app store: submitted apps, the per-device
upload ledger and device subscriptions. Rows map 1:1 onto the Supabase
tables ``apps``, ``developer_device_usage`` and ``developer_subscriptions``.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Callable
from datetime import datetime, timezone
import uuid


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Timezone-aware current time, the default clock for every component"""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a timestamp coming from storage or a provider payload.

    Accepts ISO-8601 strings (including a trailing 'Z'), unix seconds and
    datetimes. Naive values are assumed to be UTC.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 in UTC with a 'Z' suffix, the format the mobile client parses"""
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class AppStatus(str, Enum):
    """Review status of a submitted app. Only pending -> approved is allowed."""
    PENDING = "pending"
    APPROVED = "approved"


class AppCategory(str, Enum):
    """Store categories"""
    GAMES = "games"
    ENTERTAINMENT = "entertainment"
    HEALTH = "health"
    WEATHER = "weather"
    FINANCE = "finance"
    HOME = "home"
    MUSIC = "music"
    SPORTS = "sports"
    EDUCATION = "education"
    TRAVEL = "travel"
    UTILITIES = "utilities"
    SOCIAL = "social"


class DeviceCompatibility(str, Enum):
    """Which iOS devices an IPA targets"""
    IPHONE = "iphone"
    IPAD = "ipad"
    BOTH = "both"


@dataclass
class AppRecord:
    """
    A submitted app.

    ``status``, ``created_at`` and ``uploaded_by_device_id`` drive the gating
    policy; every other field is descriptive data carried through unchanged.
    """
    name: str
    developer_name: str
    version: str
    category: AppCategory
    ipa_path: str
    description: str = ""
    device: DeviceCompatibility = DeviceCompatibility.BOTH
    icon_path: Optional[str] = None
    social_twitter: Optional[str] = None
    social_website: Optional[str] = None
    app_store_link: Optional[str] = None
    status: AppStatus = AppStatus.PENDING
    uploaded_by_device_id: Optional[str] = None
    created_at: Optional[datetime] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def is_owned_by(self, device_id: Optional[str]) -> bool:
        """Ownership check used for delete permission (never persisted)"""
        return bool(device_id) and self.uploaded_by_device_id == device_id

    def to_row(self) -> Dict[str, Any]:
        """Serialize to an ``apps`` table row"""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "developer_name": self.developer_name,
            "version": self.version,
            "category": self.category.value,
            "ipa_path": self.ipa_path,
            "device": self.device.value,
            "icon_path": self.icon_path,
            "social_twitter": self.social_twitter,
            "social_website": self.social_website,
            "app_store_link": self.app_store_link,
            "status": self.status.value,
            "uploaded_by_device_id": self.uploaded_by_device_id,
            "created_at": format_timestamp(self.created_at),
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'AppRecord':
        """Build from an ``apps`` table row"""
        try:
            category = AppCategory(row.get("category"))
        except ValueError:
            category = AppCategory.UTILITIES

        try:
            device = DeviceCompatibility(row.get("device") or "both")
        except ValueError:
            device = DeviceCompatibility.BOTH

        try:
            status = AppStatus(row.get("status") or "pending")
        except ValueError:
            status = AppStatus.PENDING

        return cls(
            id=str(row["id"]),
            name=row.get("name", ""),
            description=row.get("description") or "",
            developer_name=row.get("developer_name", ""),
            version=row.get("version", ""),
            category=category,
            ipa_path=row.get("ipa_path") or "",
            device=device,
            icon_path=row.get("icon_path"),
            social_twitter=row.get("social_twitter"),
            social_website=row.get("social_website"),
            app_store_link=row.get("app_store_link"),
            status=status,
            uploaded_by_device_id=row.get("uploaded_by_device_id"),
            created_at=parse_timestamp(row.get("created_at")),
        )


@dataclass
class DeviceUsage:
    """Free-tier upload ledger entry. upload_count is never decremented."""
    device_id: str
    upload_count: int = 0
    updated_at: Optional[datetime] = None

    def to_row(self) -> Dict[str, Any]:
        return {
            "device_id": self.device_id,
            "upload_count": self.upload_count,
            "updated_at": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'DeviceUsage':
        return cls(
            device_id=row["device_id"],
            upload_count=int(row.get("upload_count") or 0),
            updated_at=parse_timestamp(row.get("updated_at")),
        )


@dataclass
class SubscriptionRecord:
    """
    Paid subscription attached to a device.

    Never deleted: an expired record simply evaluates as not subscribed.
    ``stripe_customer_id`` is the join key for webhook updates.
    """
    device_id: str
    current_period_end: Optional[datetime] = None
    stripe_customer_id: Optional[str] = None
    updated_at: Optional[datetime] = None

    def is_active(self, now: datetime) -> bool:
        """Subscribed iff the period end exists and is strictly in the future"""
        return self.current_period_end is not None and self.current_period_end > now

    def to_row(self) -> Dict[str, Any]:
        return {
            "device_id": self.device_id,
            "stripe_customer_id": self.stripe_customer_id,
            "current_period_end": format_timestamp(self.current_period_end),
            "updated_at": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'SubscriptionRecord':
        return cls(
            device_id=row["device_id"],
            current_period_end=parse_timestamp(row.get("current_period_end")),
            stripe_customer_id=row.get("stripe_customer_id"),
            updated_at=parse_timestamp(row.get("updated_at")),
        )
