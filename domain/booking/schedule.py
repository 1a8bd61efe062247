"""
场馆营业时间（值对象）

场馆服务以每个工作日独立配置：{enabled, start_time?, end_time?}，时间为 "HH:MM"。
enabled=false 时不允许携带时间。
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, tzinfo
from typing import Any, Mapping, Optional

from domain.common.exceptions import DomainValidationException


WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


def parse_clock(value: Any, *, field_name: str) -> time:
    """解析 "HH:MM"（兼容 "HH:MM:SS"）为 time。"""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if not isinstance(value, str):
        raise DomainValidationException(f"invalid time for {field_name}: {value!r}", field=field_name)
    value = value.strip()
    # 场馆服务也可能返回 RFC3339 时间戳（如 "0000-01-01T09:00:00Z"），只取时分
    if "T" in value:
        value = value.split("T", 1)[1][:8]
    parts = value.split(":")
    if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
        raise DomainValidationException(f"invalid time for {field_name}: {value!r}", field=field_name)
    hour, minute = int(parts[0]), int(parts[1])
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise DomainValidationException(f"invalid time for {field_name}: {value!r}", field=field_name)
    return time(hour, minute)


@dataclass(frozen=True)
class DaySchedule:
    enabled: bool
    start_time: Optional[time] = None
    end_time: Optional[time] = None

    def __post_init__(self):
        if self.enabled:
            if self.start_time is None or self.end_time is None:
                raise DomainValidationException(
                    "start_time and end_time are required for an enabled day",
                    field="weekdays",
                )
            if not self.start_time < self.end_time:
                raise DomainValidationException(
                    "start_time must be before end_time",
                    field="weekdays",
                )
        elif self.start_time is not None or self.end_time is not None:
            raise DomainValidationException(
                "a disabled day must not carry working hours",
                field="weekdays",
            )

    @classmethod
    def closed(cls) -> "DaySchedule":
        return cls(enabled=False)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]], *, day: str) -> "DaySchedule":
        if not data or not data.get("enabled"):
            return cls.closed()
        return cls(
            enabled=True,
            start_time=parse_clock(data.get("start_time"), field_name=f"{day}.start_time"),
            end_time=parse_clock(data.get("end_time"), field_name=f"{day}.end_time"),
        )


@dataclass(frozen=True)
class WeeklySchedule:
    """weekday 索引与 date.weekday() 一致：0=周一 … 6=周日；缺省的日子视为休息"""

    days: Mapping[int, DaySchedule] = field(default_factory=dict)

    def for_weekday(self, weekday: int) -> DaySchedule:
        return self.days.get(weekday) or DaySchedule.closed()

    def window(self, day: date, tz: tzinfo) -> Optional[tuple[datetime, datetime]]:
        """返回某日的营业窗口（带时区）；休息日返回 None。"""
        schedule = self.for_weekday(day.weekday())
        if not schedule.enabled:
            return None
        return (
            datetime.combine(day, schedule.start_time, tzinfo=tz),
            datetime.combine(day, schedule.end_time, tzinfo=tz),
        )

    @classmethod
    def from_dict(cls, weekdays: Optional[Mapping[str, Any]]) -> "WeeklySchedule":
        weekdays = weekdays or {}
        return cls(days={
            idx: DaySchedule.from_dict(weekdays.get(name), day=name)
            for idx, name in enumerate(WEEKDAY_NAMES)
        })


@dataclass(frozen=True)
class VenueSchedule:
    """场馆服务返回的与预订相关的场馆快照"""

    venue_id: int
    weekly: WeeklySchedule
    owner_id: Optional[int] = None
    is_active: bool = True
