"""Lead scoring for fused property records.

Scores are integers in [0, 100]. The total is a weighted blend of the
component scores; equity is only known when both a valuation and a lien or
mortgage amount are available, and the weights are renormalized over the
components that are known.
"""

from __future__ import annotations

from typing import Sequence

from leadfusion.fusion.records import FusedLeadRecord, LeadScore

DISTRESS_SIGNAL_WEIGHTS: dict[str, int] = {
    "pre-foreclosure": 80,
    "foreclosure": 75,
    "auction-scheduled": 90,
    "bank-owned": 60,
    "tax-lien": 85,
    "probate": 70,
    "divorce": 65,
    "bankruptcy": 80,
    "vacant": 50,
    "code-violation": 45,
    "lien": 40,
    "judgment": 35,
    "lis-pendens": 75,
    "short-sale": 60,
    "absentee-owner": 30,
    "out-of-state-owner": 25,
    "expired-listing": 20,
    "fsbo": 15,
    "fixer-upper": 30,
    "motivated-seller": 35,
}
UNKNOWN_SIGNAL_WEIGHT = 10

MOTIVATION_SIGNAL_WEIGHTS: dict[str, int] = {
    "pre-foreclosure": 30,
    "bankruptcy": 30,
    "tax-lien": 25,
    "divorce": 25,
    "probate": 25,
    "motivated-seller": 20,
    "vacant": 15,
}
POOR_CONDITION_MARKERS = ("poor", "fixer", "needs")

COMPONENT_WEIGHTS: dict[str, float] = {
    "distress_score": 0.35,
    "equity_score": 0.25,
    "contact_score": 0.15,
    "motivation_score": 0.15,
}

DIRECT_CONTACT_CONFIDENCE = 0.7


def distress_score(record: FusedLeadRecord) -> int:
    score = sum(
        DISTRESS_SIGNAL_WEIGHTS.get(signal.lower(), UNKNOWN_SIGNAL_WEIGHT)
        for signal in record.distress_signals
    )
    return min(100, score)


def contact_score(record: FusedLeadRecord) -> int:
    direct = [c for c in record.contacts if c.confidence >= DIRECT_CONTACT_CONFIDENCE]

    score = 0
    if any(c.type == "phone" for c in direct):
        score += 30
    if any(c.type == "email" for c in direct):
        score += 25
    if record.address:
        score += 15
    return min(100, score)


def motivation_score(record: FusedLeadRecord) -> int:
    signals = {signal.lower() for signal in record.distress_signals}
    score = sum(weight for signal, weight in MOTIVATION_SIGNAL_WEIGHTS.items() if signal in signals)

    condition = record.attributes.get("condition")
    if isinstance(condition, str) and any(m in condition.lower() for m in POOR_CONDITION_MARKERS):
        score += 20

    return min(100, score)


def equity_score(record: FusedLeadRecord) -> int | None:
    """Equity bracket from valuation vs. outstanding debt, or None when unknown."""
    debt = record.attributes.get("mortgageAmount", record.attributes.get("lienAmount"))
    if record.avm is None or record.avm <= 0 or not isinstance(debt, (int, float)):
        return None

    ratio = (record.avm - debt) / record.avm
    if ratio >= 0.5:
        return 100
    if ratio >= 0.3:
        return 75
    if ratio >= 0.15:
        return 50
    if ratio > 0:
        return 25
    return 0


def classify(total: int) -> str:
    if total >= 80:
        return "HOT"
    if total >= 60:
        return "WARM"
    if total >= 40:
        return "LUKEWARM"
    return "COLD"


def score_lead(record: FusedLeadRecord) -> LeadScore:
    components: dict[str, int | None] = {
        "distress_score": distress_score(record),
        "equity_score": equity_score(record),
        "contact_score": contact_score(record),
        "motivation_score": motivation_score(record),
    }

    known = {name: value for name, value in components.items() if value is not None}
    weight_total = sum(COMPONENT_WEIGHTS[name] for name in known)
    weighted = sum(COMPONENT_WEIGHTS[name] * value for name, value in known.items())
    total = round(weighted / weight_total) if weight_total else 0

    return LeadScore(
        distress_score=components["distress_score"],
        contact_score=components["contact_score"],
        motivation_score=components["motivation_score"],
        equity_score=components["equity_score"],
        total_score=total,
        classification=classify(total),
    )


def score_leads(records: Sequence[FusedLeadRecord]) -> list[FusedLeadRecord]:
    """Copies of ``records`` with ``scoring`` attached."""
    return [record.model_copy(update={"scoring": score_lead(record)}) for record in records]
