from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from .answers import QuestionType


class Bucket(str, Enum):
    # time
    TIME_ALLOCATION = "time_allocation"
    SYSTEM_PROBLEM_TIME = "system_problem_time"
    # system
    TOOL_COUNT = "tool_count"
    LOGIN_FRAGMENTATION = "login_fragmentation"
    WORKAROUND_COUNT = "workaround_count"
    CRITICAL_WORKAROUNDS = "critical_workarounds"
    MANUAL_TRACKING = "manual_tracking"
    # collaboration
    INFORMATION_SHARING = "information_sharing"
    HANDOFF_QUALITY = "handoff_quality"
    COMMUNICATION_GAPS = "communication_gaps"
    PIPELINE_REVIEWS = "pipeline_reviews"
    # process
    LEAD_LOSS_RATE = "lead_loss_rate"
    LEAD_LOSS_INCIDENCE = "lead_loss_incidence"
    CONVERSION_STAGES = "conversion_stages"
    LEAD_TRACKING = "lead_tracking"
    DATA_ACCESS = "data_access"
    # likert business scales
    WORKFLOW_EFFECTIVENESS = "workflow_effectiveness"
    PROCESS_OPTIMIZATION = "process_optimization"
    TASK_COMPLETION = "task_completion"
    MANAGER_EFFECTIVENESS = "manager_effectiveness"
    SALES_PRODUCTIVITY = "sales_productivity"
    COLLABORATION_QUALITY = "collaboration_quality"
    WORKFLOW_EFFICIENCY = "workflow_efficiency"
    DATA_QUALITY = "data_quality"
    LEAD_CONVERSION = "lead_conversion"
    # free text scanned for critical language
    FREE_TEXT = "free_text"


@dataclass(frozen=True)
class BucketRule:
    bucket: Bucket
    question_type: QuestionType
    tags: frozenset[str]


def _rule(bucket: Bucket, question_type: QuestionType, *tags: str) -> BucketRule:
    return BucketRule(bucket=bucket, question_type=question_type, tags=frozenset(tags))


L = QuestionType.LIKERT
P = QuestionType.PERCENTAGE
MC = QuestionType.MULTIPLE_CHOICE
CB = QuestionType.CHECKBOX
T = QuestionType.TEXT

BUCKET_RULES: tuple[BucketRule, ...] = (
    _rule(Bucket.TIME_ALLOCATION, P, "time_allocation", "admin_burden", "time_spent"),
    _rule(Bucket.SYSTEM_PROBLEM_TIME, MC, "system_burden"),
    _rule(Bucket.TOOL_COUNT, MC, "tool_count"),
    _rule(Bucket.LOGIN_FRAGMENTATION, MC, "system_fragmentation", "login_fragmentation"),
    _rule(Bucket.WORKAROUND_COUNT, MC, "workarounds"),
    _rule(Bucket.CRITICAL_WORKAROUNDS, T, "critical_workarounds"),
    _rule(Bucket.MANUAL_TRACKING, CB, "manual_workarounds", "tracking_methods"),
    _rule(Bucket.INFORMATION_SHARING, L, "information_sharing"),
    _rule(Bucket.HANDOFF_QUALITY, L, "handoff_quality"),
    _rule(Bucket.COMMUNICATION_GAPS, CB, "communication_gaps"),
    _rule(Bucket.PIPELINE_REVIEWS, MC, "pipeline_reviews"),
    _rule(Bucket.LEAD_LOSS_RATE, MC, "lead_loss_rate"),
    _rule(Bucket.LEAD_LOSS_INCIDENCE, MC, "lead_loss"),
    _rule(Bucket.CONVERSION_STAGES, P, "conversion_stages", "loss_analysis"),
    _rule(Bucket.LEAD_TRACKING, L, "lead_tracking_confidence"),
    _rule(Bucket.DATA_ACCESS, MC, "data_accessibility"),
    _rule(Bucket.WORKFLOW_EFFECTIVENESS, L, "effectiveness", "alignment", "automation_effectiveness"),
    _rule(Bucket.PROCESS_OPTIMIZATION, L, "excel_impact", "data_integrity", "follow_up_quality"),
    _rule(Bucket.TASK_COMPLETION, L, "information_accessibility", "call_preparation"),
    _rule(Bucket.MANAGER_EFFECTIVENESS, L, "performance_monitoring", "visibility", "coaching_data"),
    _rule(Bucket.SALES_PRODUCTIVITY, L, "productivity", "personalization", "interaction_quality"),
    _rule(Bucket.COLLABORATION_QUALITY, L, "collaboration", "team_coordination", "information_sharing", "handoff_quality"),
    _rule(Bucket.WORKFLOW_EFFICIENCY, L, "efficiency", "time_efficiency", "cost_effectiveness", "roi"),
    _rule(Bucket.DATA_QUALITY, L, "data_quality", "data_confidence", "forecasting"),
    _rule(Bucket.LEAD_CONVERSION, L, "lead_conversion", "lead_tracking_confidence", "pipeline_reliability"),
)


def parse_tags(raw: str | None) -> frozenset[str]:
    if not raw:
        return frozenset()
    return frozenset(tag.strip().lower() for tag in str(raw).split(",") if tag.strip())


def has_tag(question: dict[str, Any], tag: str) -> bool:
    return tag in parse_tags(question.get("analysis_tags"))


class BucketIndex:
    """(question type, bucket) -> question ids, computed once per question set."""

    def __init__(self, mapping: dict[tuple[QuestionType, Bucket], list[int]]) -> None:
        self._mapping = mapping

    def get(self, question_type: QuestionType, bucket: Bucket) -> list[int]:
        return list(self._mapping.get((question_type, bucket), []))

    def ids(self, bucket: Bucket) -> list[int]:
        out: list[int] = []
        for (_, b), ids in self._mapping.items():
            if b is bucket:
                out.extend(ids)
        return sorted(set(out))

    def __contains__(self, key: tuple[QuestionType, Bucket]) -> bool:
        return key in self._mapping


def build_bucket_index(questions: Iterable[dict[str, Any]]) -> BucketIndex:
    mapping: dict[tuple[QuestionType, Bucket], list[int]] = defaultdict(list)
    for q in questions:
        try:
            qtype = QuestionType(str(q.get("question_type")))
        except ValueError:
            continue
        qid = int(q["id"])
        tags = parse_tags(q.get("analysis_tags"))
        for rule in BUCKET_RULES:
            if rule.question_type is qtype and tags & rule.tags:
                mapping[(qtype, rule.bucket)].append(qid)
        if qtype is QuestionType.TEXT:
            mapping[(qtype, Bucket.FREE_TEXT)].append(qid)
    return BucketIndex(dict(mapping))
