"""Application funnel model built from reported per-stage loss shares."""

from __future__ import annotations

from typing import Any

from .metrics import FUNNEL_STAGES

DEFAULT_LOSS_SHARES = {
    "Initial Inquiry": 20.0,
    "Application Started": 25.0,
    "Document Collection": 35.0,
    "Review Process": 15.0,
    "Decision Stage": 5.0,
}
# Share of reported losses that is treated as drop-off when leaving a stage.
LOSS_SHARE_WEIGHT = 0.6
MAX_STAGE_DROP = 90

STAGE_AVERAGE_DAYS = {
    "Initial Inquiry": 1.2,
    "Application Started": 3.5,
    "Document Collection": 8.7,
    "Review Process": 4.2,
    "Decision Stage": 2.1,
}
STAGE_TARGET_DAYS = {
    "Initial Inquiry": 1.0,
    "Application Started": 2.0,
    "Document Collection": 5.0,
    "Review Process": 3.0,
    "Decision Stage": 2.0,
}
HEALTHY_CONVERSION_RATE = 70.0


def _stage_id(name: str) -> str:
    return "-".join(name.lower().split())


def dropoff_severity(dropoff: float) -> str:
    if dropoff > 30:
        return "high"
    if dropoff > 15:
        return "medium"
    if dropoff > 5:
        return "low"
    return "none"


def build_funnel(base_leads: int, loss_shares: dict[str, float] | None = None) -> dict[str, Any]:
    """Stage counts from ``base_leads``; ``source`` says whether reported shares were usable."""
    shares = dict(DEFAULT_LOSS_SHARES)
    source = "default"
    if loss_shares:
        known = {k: v for k, v in loss_shares.items() if k in shares}
        if known:
            shares = {stage: float(known.get(stage, 0.0)) for stage in FUNNEL_STAGES}
            source = "survey"

    counts = [int(base_leads)]
    for stage in FUNNEL_STAGES[:-1]:
        drop = min(MAX_STAGE_DROP, round(shares[stage] * LOSS_SHARE_WEIGHT))
        counts.append(round(counts[-1] * (1 - drop / 100)))

    stages = []
    for i, name in enumerate(FUNNEL_STAGES):
        count = counts[i]
        if i == 0 or counts[i - 1] <= 0:
            dropoff = 0
        else:
            dropoff = round((counts[i - 1] - count) / counts[i - 1] * 100)
        stages.append(
            {
                "id": _stage_id(name),
                "name": name,
                "count": count,
                "percentage": round(count / base_leads * 100, 1) if base_leads else 0.0,
                "dropoffPercentage": dropoff,
                "bottleneckSeverity": dropoff_severity(dropoff),
                "details": {
                    "lossShare": round(shares[name], 1),
                    "avgTimeInStage": f"{STAGE_AVERAGE_DAYS[name]} days",
                    "completionRate": 100 - dropoff,
                },
            }
        )

    conversion_rates = []
    for prev, cur in zip(stages, stages[1:]):
        rate = round(cur["count"] / prev["count"] * 100, 1) if prev["count"] else 0.0
        conversion_rates.append({"from": prev["name"], "to": cur["name"], "rate": rate})

    total = round(counts[-1] / base_leads * 100, 1) if base_leads else 0.0
    return {
        "stages": stages,
        "conversionRates": conversion_rates,
        "totalConversion": total,
        "baseLeads": base_leads,
        "source": source,
    }


def stage_timing() -> dict[str, Any]:
    rows = []
    for name in FUNNEL_STAGES:
        days = STAGE_AVERAGE_DAYS[name]
        target = STAGE_TARGET_DAYS[name]
        ratio = days / target
        if ratio > 1.5:
            status = "high"
        elif ratio > 1.2:
            status = "medium"
        else:
            status = "normal"
        rows.append({"stage": name, "days": days, "targetDays": target, "ratio": round(ratio, 2), "status": status})
    total = round(sum(STAGE_AVERAGE_DAYS.values()), 1)
    target_total = round(sum(STAGE_TARGET_DAYS.values()), 1)
    return {"averageDaysInStage": rows, "totalDays": total, "targetTotalDays": target_total}


def bottleneck_indicators(funnel: dict[str, Any], timing: dict[str, Any], primary_stage: str | None) -> dict[str, Any]:
    incoming = {r["to"]: r["rate"] for r in funnel["conversionRates"]}
    timing_by_stage = {r["stage"]: r["status"] for r in timing["averageDaysInStage"]}
    indicators = []
    for stage in funnel["stages"]:
        name = stage["name"]
        score = 0
        reasons: list[str] = []
        if primary_stage and name == primary_stage:
            score += 10
            reasons.append("Primary lead loss stage")
        rate = incoming.get(name)
        if rate is not None and rate < HEALTHY_CONVERSION_RATE:
            score += round((HEALTHY_CONVERSION_RATE - rate) / 10)
            reasons.append(f"Conversion rate {rate}% below {HEALTHY_CONVERSION_RATE:.0f}%")
        status = timing_by_stage.get(name)
        if status == "high":
            score += 5
            reasons.append("Time in stage well above target")
        elif status == "medium":
            score += 3
            reasons.append("Time in stage above target")
        score = min(10, score)
        level = "HIGH" if score >= 7 else "MEDIUM" if score >= 4 else "LOW"
        indicators.append({"stage": name, "score": score, "level": level, "reasons": reasons})

    highs = len([i for i in indicators if i["level"] == "HIGH"])
    mediums = len([i for i in indicators if i["level"] == "MEDIUM"])
    if highs >= 2:
        overall = "CRITICAL"
    elif highs == 1 or mediums >= 2:
        overall = "SIGNIFICANT"
    elif mediums == 1:
        overall = "MODERATE"
    else:
        overall = "LOW"
    return {"stages": indicators, "overallSeverity": overall}
