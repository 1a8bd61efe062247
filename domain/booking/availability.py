"""
可用性与冲突引擎

- validate_candidate: 校验候选预订（跨日、营业时间、最短时长、与已有预订重叠）
- free_slots: 计算某日营业窗口内的空闲时段

引擎本身只做"先读后写"的快速判断；并发下的最终裁决由存储层排他约束完成。
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterable, Optional

from domain.booking.entity import Booking
from domain.booking.schedule import WeeklySchedule
from domain.common.exceptions import (
    BookingConflictException,
    ScheduleMismatchException,
)


@dataclass(frozen=True)
class TimeSlot:
    start_at: datetime
    end_at: datetime

    @property
    def duration(self) -> timedelta:
        return self.end_at - self.start_at


def intervals_overlap(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    """半开区间重叠判断。

    a.start < b.end and a.end > b.start 同时覆盖交错重叠、反向交错与完全包含三种情况；
    首尾相接（a.end == b.start）不算重叠。
    """
    return a_start < b_end and a_end > b_start


class AvailabilityEngine:
    """可用性与冲突计算（纯领域逻辑，不做 I/O）"""

    def __init__(
        self,
        *,
        min_duration: timedelta = timedelta(hours=1),
        tz: tzinfo = timezone.utc,
    ) -> None:
        self.min_duration = min_duration
        self.tz = tz

    def local_date(self, moment: datetime) -> date:
        return moment.astimezone(self.tz).date()

    def day_bounds(self, day: date) -> tuple[datetime, datetime]:
        """某日（场馆时区）的 [00:00, 次日00:00) 范围，用于查询当日预订"""
        start = datetime.combine(day, time(0, 0), tzinfo=self.tz)
        return start, start + timedelta(days=1)

    def validate_candidate(
        self,
        schedule: WeeklySchedule,
        start_at: datetime,
        end_at: datetime,
        existing: Iterable[Booking],
        *,
        venue_id: int,
        exclude_id: Optional[int] = None,
    ) -> None:
        """校验候选预订，不通过时抛出 ScheduleMismatch / BookingConflict。"""
        local_start = start_at.astimezone(self.tz)
        local_end = end_at.astimezone(self.tz)

        # 1. 不允许跨越午夜
        if local_start.date() != local_end.date():
            raise ScheduleMismatchException(
                "reservation must start and end on the same day",
                details={"start_at": start_at.isoformat(), "end_at": end_at.isoformat()},
            )

        # 2. 营业日与营业窗口
        window = schedule.window(local_start.date(), self.tz)
        if window is None:
            raise ScheduleMismatchException(
                "venue is closed on the requested day",
                details={"weekday": local_start.strftime("%A").lower()},
            )
        opens_at, closes_at = window
        if local_start < opens_at or local_end > closes_at:
            raise ScheduleMismatchException(
                "reservation is outside venue working hours",
                details={
                    "opens_at": opens_at.strftime("%H:%M"),
                    "closes_at": closes_at.strftime("%H:%M"),
                },
            )

        # 3. 最短时长
        if end_at - start_at < self.min_duration:
            raise ScheduleMismatchException(
                "minimum reservation duration is "
                f"{int(self.min_duration.total_seconds() // 60)} minutes",
                details={"duration_minutes": int((end_at - start_at).total_seconds() // 60)},
            )

        # 4. 与已有有效预订的重叠
        for booking in existing:
            if not booking.is_active:
                continue
            if exclude_id is not None and booking.id == exclude_id:
                continue
            if intervals_overlap(booking.start_at, booking.end_at, start_at, end_at):
                raise BookingConflictException(
                    venue_id, start_at, end_at, conflicting_id=booking.id
                )

    def free_slots(
        self,
        schedule: WeeklySchedule,
        day: date,
        bookings: Iterable[Booking],
    ) -> list[TimeSlot]:
        """计算空闲时段：裁剪、排序、合并已占用区间后取补集，丢弃短于最短时长的空隙。"""
        window = schedule.window(day, self.tz)
        if window is None:
            return []
        opens_at, closes_at = window

        busy: list[tuple[datetime, datetime]] = []
        for booking in bookings:
            if not booking.is_active:
                continue
            start = max(booking.start_at.astimezone(self.tz), opens_at)
            end = min(booking.end_at.astimezone(self.tz), closes_at)
            if start < end:
                busy.append((start, end))
        busy.sort(key=lambda item: item[0])

        merged: list[list[datetime]] = []
        for start, end in busy:
            if merged and start <= merged[-1][1]:
                merged[-1][1] = max(merged[-1][1], end)
            else:
                merged.append([start, end])

        slots: list[TimeSlot] = []
        cursor = opens_at
        for start, end in merged:
            if start - cursor >= self.min_duration:
                slots.append(TimeSlot(cursor, start))
            cursor = max(cursor, end)
        if closes_at - cursor >= self.min_duration:
            slots.append(TimeSlot(cursor, closes_at))
        return slots
