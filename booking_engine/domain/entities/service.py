from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Service:
    id: str
    business_id: str
    name: str
    duration_minutes: int
    active: bool = True
    price: float | None = None
