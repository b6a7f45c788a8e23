# file: scamshield/reputation/decision.py
"""
Explainable blocking decision.

Turns a `NumberReport` into a block recommendation. Like the risk report
itself, the decision is transparent: it returns the combined score and which
signal contributed what.

Weights and the threshold are configurable (see `scamshield.config`).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from scamshield.reputation.report import NumberReport


@dataclass(frozen=True, slots=True)
class DecisionSignal:
    name: str
    weight: float
    value: float
    contribution: float
    reason: str

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "weight": self.weight,
            "value": self.value,
            "contribution": self.contribution,
            "reason": self.reason,
        }


@dataclass(frozen=True, slots=True)
class BlockDecision:
    should_block: bool
    score: int
    threshold: int
    breakdown: list[DecisionSignal]

    def to_dict(self) -> dict[str, object]:
        return {
            "should_block": self.should_block,
            "score": self.score,
            "threshold": self.threshold,
            "breakdown": [b.to_dict() for b in self.breakdown],
        }


def default_decision_weights() -> dict[str, float]:
    """
    Default weights.

    `risk_score` is multiplied by the remote 0..100 score; `per_report` is added
    for every user report, capped at `max_reports_counted` reports.
    """

    return {
        "risk_score": 1.0,
        "per_report": 5.0,
        "max_reports_counted": 10.0,
    }


def _clamp(n: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, n))


def decide_block(
    report: NumberReport,
    *,
    threshold: int = 70,
    weights: Mapping[str, float] | None = None,
) -> BlockDecision:
    """
    Decide whether `report` justifies blocking.

    A zero-risk report (unknown number) never crosses a positive threshold.
    """

    w = dict(default_decision_weights())
    if weights:
        for k, v in weights.items():
            w[str(k)] = float(v)

    breakdown: list[DecisionSignal] = []

    risk_weight = w.get("risk_score", 0.0)
    breakdown.append(
        DecisionSignal(
            name="risk_score",
            weight=risk_weight,
            value=float(report.risk_score),
            contribution=risk_weight * report.risk_score,
            reason="Risk score computed by the report service",
        )
    )

    cap = max(0.0, w.get("max_reports_counted", 0.0))
    counted = _clamp(float(report.times_reported), 0.0, cap)
    per_report = w.get("per_report", 0.0)
    breakdown.append(
        DecisionSignal(
            name="times_reported",
            weight=per_report,
            value=counted,
            contribution=per_report * counted,
            reason=f"User reports (capped at {int(cap)})",
        )
    )

    score = int(round(_clamp(sum(b.contribution for b in breakdown), 0.0, 100.0)))
    return BlockDecision(
        should_block=score >= threshold and score > 0,
        score=score,
        threshold=threshold,
        breakdown=breakdown,
    )
