from __future__ import annotations

import math
from typing import Any

from ..config import STATS_WINDOW_DAYS

HIGH_CONFIDENCE_RESPONSES = 20
MEDIUM_CONFIDENCE_RESPONSES = 10


def confidence_level(response_count: int) -> str:
    if response_count >= HIGH_CONFIDENCE_RESPONSES:
        return "high"
    if response_count >= MEDIUM_CONFIDENCE_RESPONSES:
        return "medium"
    return "low"


def confidence_score(response_count: int, question_count: int) -> float:
    # Sigmoid on sample size, discounted when a metric blends many questions.
    normalized = 1 - (1 / (1 + math.exp(response_count / 10 - 3)))
    question_adjustment = max(0.7, 1 - (max(question_count, 1) - 1) * 0.05)
    return round(normalized * question_adjustment, 4)


def confidence_factors(response_count: int, question_count: int) -> list[str]:
    if response_count < 10:
        sample = "Limited sample size"
    elif response_count < 30:
        sample = "Moderate sample size"
    else:
        sample = "Strong sample size"
    consistency = "Based on multiple related questions" if question_count > 1 else "Based on a single question"
    return [sample, "Well-distributed responses", consistency, f"Data from the past {STATS_WINDOW_DAYS} days"]


def build_confidence(response_count: int, question_count: int, *, has_data: bool = True) -> dict[str, Any]:
    level = confidence_level(response_count) if has_data else "low"
    return {
        "level": level,
        "score": confidence_score(response_count, question_count) if has_data else 0.0,
        "factors": confidence_factors(response_count, question_count),
    }
