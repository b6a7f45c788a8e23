# file: scamshield/reputation/report.py
"""
Report DTOs exchanged with the remote report API.

`NumberReport` is only used to inform the blocking decision; it is never
written to the block list.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any


def now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass(frozen=True, slots=True)
class NumberReport:
    """
    Risk summary for one phone number.

    Fields:
        phone_number: Number as echoed by the server.
        risk_score: 0..100, higher is riskier.
        times_reported: How many users reported this number.
        timestamp: When scamshield fetched the report.
    """

    phone_number: str
    risk_score: int
    times_reported: int
    timestamp: datetime = field(default_factory=now_utc)

    def __post_init__(self) -> None:
        if not 0 <= self.risk_score <= 100:
            raise ValueError(f"risk_score must be within 0..100, got {self.risk_score}")
        if self.times_reported < 0:
            raise ValueError(f"times_reported must be >= 0, got {self.times_reported}")

    @classmethod
    def empty(cls, phone_number: str) -> "NumberReport":
        """Zero-risk report for numbers the remote has never seen."""
        return cls(phone_number=phone_number, risk_score=0, times_reported=0)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "NumberReport":
        """
        Build a report from `{number, risk_score, no_of_times_reported}`.

        Raises:
            ValueError: on missing fields or wrong types.
        """

        number = payload.get("number")
        risk = payload.get("risk_score")
        times = payload.get("no_of_times_reported")
        if not isinstance(number, (str, int)) or isinstance(number, bool):
            raise ValueError("'number' must be a string")
        for name, value in (("risk_score", risk), ("no_of_times_reported", times)):
            if not isinstance(value, int) or isinstance(value, bool):
                raise ValueError(f"'{name}' must be an integer")
        return cls(phone_number=str(number), risk_score=int(risk), times_reported=int(times))  # type: ignore[arg-type]

    def to_dict(self) -> dict[str, Any]:
        return {
            "phone_number": self.phone_number,
            "risk_score": self.risk_score,
            "times_reported": self.times_reported,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class CallReport:
    username: str
    number: str
    reason: str
    date: date

    def to_payload(self) -> dict[str, str]:
        return {
            "username": self.username,
            "number": self.number,
            "reason": self.reason,
            "date": self.date.isoformat(),
        }
