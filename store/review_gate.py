"""
Review Gate - decides whether an app is downloadable right now

A newly submitted app is held for a review period (48h by default) unless a
reviewer approves it first. The result is always recomputed from
``status``/``created_at`` and the current time; nothing is persisted, so two
reads of the same record can disagree without any write in between.

Usage:
    gate = ReviewGate()
    state = gate.evaluate(app.status, app.created_at, now)
    if not state.can_download:
        show(state.label)    # "Available in 3h 20m"
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Union, Dict, Any

from store.models import AppRecord, AppStatus

DEFAULT_REVIEW_PERIOD = timedelta(hours=48)

UNDER_REVIEW_LABEL = "Under review"


@dataclass(frozen=True)
class ReviewState:
    """Outcome of a Review Gate evaluation"""
    can_download: bool
    remaining: timedelta
    label: str

    @property
    def remaining_seconds(self) -> int:
        return int(self.remaining.total_seconds())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "canDownload": self.can_download,
            "remainingSeconds": self.remaining_seconds,
            "availabilityLabel": self.label,
        }


def format_countdown(remaining: timedelta) -> str:
    """Human-readable label for the time left in review"""
    total_minutes = int(remaining.total_seconds() // 60)
    hours, minutes = divmod(total_minutes, 60)

    if hours > 0:
        return f"Available in {hours}h {minutes}m"
    if minutes > 0:
        return f"Available in {minutes}m"
    # Effectively zero left but still pending (clock skew between hosts)
    return UNDER_REVIEW_LABEL


class ReviewGate:
    """Pure function of (status, created_at, now) with a configurable period"""

    def __init__(self, review_period: timedelta = DEFAULT_REVIEW_PERIOD):
        self.review_period = review_period

    def can_download(
        self,
        status: Union[AppStatus, str, None],
        created_at: Optional[datetime],
        now: datetime,
    ) -> bool:
        if _normalize_status(status) == AppStatus.APPROVED:
            return True
        if created_at is None:
            return False
        return now - created_at >= self.review_period

    def evaluate(
        self,
        status: Union[AppStatus, str, None],
        created_at: Optional[datetime],
        now: datetime,
    ) -> ReviewState:
        if self.can_download(status, created_at, now):
            return ReviewState(can_download=True, remaining=timedelta(0), label="")

        if created_at is None:
            return ReviewState(
                can_download=False,
                remaining=self.review_period,
                label=UNDER_REVIEW_LABEL,
            )

        remaining = max(timedelta(0), self.review_period - (now - created_at))
        return ReviewState(
            can_download=False,
            remaining=remaining,
            label=format_countdown(remaining),
        )

    def evaluate_app(self, app: AppRecord, now: datetime) -> ReviewState:
        return self.evaluate(app.status, app.created_at, now)


def _normalize_status(status: Union[AppStatus, str, None]) -> AppStatus:
    # Unknown or missing statuses are treated as still under review
    if isinstance(status, AppStatus):
        return status
    try:
        return AppStatus(status or AppStatus.PENDING.value)
    except ValueError:
        return AppStatus.PENDING
