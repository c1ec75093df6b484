"""
Sharing models for member lists.

A list owner shares a subset of members with another user. The share mode
decides which day or month the recipient is allowed to look at.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional


class ShareMode(str, Enum):
    """
    Which period a shared list exposes.

    - DYNAMIC: recipient picks any date
    - CURRENT_DAY: live view of today only
    - LAST_MONTH: fixed to the previous calendar month
    - CUSTOM_DAY: fixed to a day chosen by the owner
    - CUSTOM_MONTH: fixed to a month chosen by the owner
    """

    DYNAMIC = "dynamic"
    CURRENT_DAY = "current_day"
    LAST_MONTH = "last_month"
    CUSTOM_DAY = "custom_day"
    CUSTOM_MONTH = "custom_month"


class StatsView(str, Enum):
    DAILY = "daily"
    MONTHLY = "monthly"


@dataclass
class ShareSettings:
    mode: ShareMode = ShareMode.DYNAMIC
    allowed_views: list[StatsView] = field(
        default_factory=lambda: [StatsView.DAILY, StatsView.MONTHLY]
    )
    custom_day: Optional[date] = None
    custom_month: Optional[str] = None  # YYYY-MM

    def allows(self, view: StatsView) -> bool:
        return view in self.allowed_views

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "mode": self.mode.value,
            "allowed_views": [v.value for v in self.allowed_views],
            "custom_day": self.custom_day.isoformat() if self.custom_day else None,
            "custom_month": self.custom_month,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ShareSettings":
        """Create ShareSettings from a stored dictionary."""
        if not data:
            return cls()
        return cls(
            mode=ShareMode(data.get("mode", ShareMode.DYNAMIC.value)),
            allowed_views=[
                StatsView(v)
                for v in data.get(
                    "allowed_views", [StatsView.DAILY.value, StatsView.MONTHLY.value]
                )
            ],
            custom_day=(
                date.fromisoformat(data["custom_day"])
                if data.get("custom_day")
                else None
            ),
            custom_month=data.get("custom_month"),
        )
