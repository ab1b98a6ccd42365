from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(frozen=True)
class CandidateInterval:
    start: datetime
    end: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def duration_minutes(self) -> int:
        return int(self.duration.total_seconds() // 60)

    @staticmethod
    def starting_at(start: datetime, duration_minutes: int) -> "CandidateInterval":
        return CandidateInterval(start=start, end=start + timedelta(minutes=duration_minutes))


@dataclass(frozen=True)
class BusyWindow:
    start: datetime
    end: datetime


@dataclass(frozen=True)
class OpenWindow:
    open: datetime
    close: datetime

    def contains(self, candidate: CandidateInterval) -> bool:
        return self.open <= candidate.start and candidate.end <= self.close


def overlaps(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    """Half-open [start, end) overlap; touching endpoints do not conflict."""
    return start < other_end and end > other_start
