"""
課金スケジュール計算

決済確定時刻から課金期間と次回自動決済の予定時刻を算出する純粋な計算処理。
日付の境界（猶予期限・次回決済日）は課金タイムゾーン（固定オフセット、DSTなし）で判定し、
結果はすべてUTCで返す。
"""
import random
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import Optional

from app.core.exceptions import ConfigurationError
from app.messages import ja


@dataclass(frozen=True)
class SchedulePolicy:
    """課金期間・猶予・次回決済時間帯のポリシー"""
    tz_offset_hours: int = 9
    period_days: int = 30
    grace_offset_days: int = 1
    window_start_hour: int = 10
    window_end_hour: int = 11

    def __post_init__(self):
        problems = []
        if not -12 <= self.tz_offset_hours <= 14:
            problems.append(f"tz_offset_hours={self.tz_offset_hours}")
        if self.period_days <= 0:
            problems.append(f"period_days={self.period_days}")
        if self.grace_offset_days < 0:
            problems.append(f"grace_offset_days={self.grace_offset_days}")
        if not 0 <= self.window_start_hour < self.window_end_hour <= 24:
            problems.append(
                f"window={self.window_start_hour}-{self.window_end_hour}"
            )
        if problems:
            raise ConfigurationError(
                f"Invalid billing schedule policy: {', '.join(problems)}",
                detail=ja.CONFIG_INVALID_BILLING_SCHEDULE
            )

    @classmethod
    def from_settings(cls, settings) -> "SchedulePolicy":
        return cls(
            tz_offset_hours=settings.BILLING_TZ_OFFSET_HOURS,
            period_days=settings.BILLING_PERIOD_DAYS,
            grace_offset_days=settings.BILLING_GRACE_OFFSET_DAYS,
            window_start_hour=settings.BILLING_SCHEDULE_WINDOW_START_HOUR,
            window_end_hour=settings.BILLING_SCHEDULE_WINDOW_END_HOUR,
        )

    @property
    def billing_tz(self) -> timezone:
        return timezone(timedelta(hours=self.tz_offset_hours))

    @property
    def window_seconds(self) -> int:
        return (self.window_end_hour - self.window_start_hour) * 3600


@dataclass(frozen=True)
class BillingPeriod:
    """1回分の課金期間（全てUTC）"""
    start_at: datetime
    end_at: datetime
    end_grace_at: datetime
    next_schedule_at: datetime


def to_utc(value: datetime) -> datetime:
    """naiveな日時はUTCとみなしてUTCに正規化"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ScheduleCalculator:
    """
    課金期間の計算

    - end_at = 基準時刻 + period_days
    - end_grace_at = end_atの翌日（課金タイムゾーン） 23:59:59
    - next_schedule_at = end_atの翌日（課金タイムゾーン）の決済時間帯内のランダムな時刻

    乱数はコンストラクタで注入できる（テストで結果を固定するため）。
    """

    def __init__(self, policy: Optional[SchedulePolicy] = None, rng: Optional[random.Random] = None):
        self.policy = policy or SchedulePolicy()
        self.rng = rng or random.Random()

    def local_target_day(self, end_at: datetime):
        """end_atの課金タイムゾーンでの日付 + 猶予日数"""
        local_end = to_utc(end_at).astimezone(self.policy.billing_tz)
        return local_end.date() + timedelta(days=self.policy.grace_offset_days)

    def grace_deadline(self, end_at: datetime) -> datetime:
        target_day = self.local_target_day(end_at)
        local = datetime.combine(target_day, time(23, 59, 59), tzinfo=self.policy.billing_tz)
        return local.astimezone(timezone.utc)

    def next_schedule_time(self, end_at: datetime) -> datetime:
        target_day = self.local_target_day(end_at)
        window_start = datetime.combine(
            target_day, time(self.policy.window_start_hour), tzinfo=self.policy.billing_tz
        )
        # 時間帯の終端は含まない: [start, end)
        offset = self.rng.randrange(self.policy.window_seconds)
        return (window_start + timedelta(seconds=offset)).astimezone(timezone.utc)

    def calculate(self, reference_instant: datetime) -> BillingPeriod:
        start_at = to_utc(reference_instant)
        end_at = start_at + timedelta(days=self.policy.period_days)
        return BillingPeriod(
            start_at=start_at,
            end_at=end_at,
            end_grace_at=self.grace_deadline(end_at),
            next_schedule_at=self.next_schedule_time(end_at),
        )
