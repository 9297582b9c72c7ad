"""Metric calculators over a validated response set.

Every calculator is a pure function of a ``ResponseSet``. Questions are selected
through the bucket index (exact analysis tags per question type), answers are
parsed once into typed variants, and each metric records its source question ids,
the complete-response count and a confidence block.
"""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable

from ..config import STATS_WINDOW_DAYS
from .answers import (
    CheckboxAnswer,
    ChoiceAnswer,
    LikertAnswer,
    ParsedAnswer,
    PercentageAnswer,
    QuestionType,
    TextAnswer,
    UnparseableAnswer,
    parse_answer,
)
from .confidence import build_confidence
from .question_buckets import Bucket, BucketIndex, build_bucket_index

ADMIN_LABELS = ("Data Entry", "Entrada de Datos", "Admin", "Administrative", "Administrativo")
SALES_LABELS = ("Venta", "Ventas", "Sales", "Selling")

SYSTEM_PROBLEM_TIME_MIDPOINTS = {"0-10%": 5.0, "11-25%": 18.0, "26-40%": 33.0, "41-60%": 50.5, "60%+": 70.0}
TOOL_COUNT_ESTIMATES = {"1-2": 1.5, "3-4": 3.5, "5-6": 5.5, "7-8": 7.5, "9+": 9.0}
TOOL_SIMPLICITY = {"1-2": 9.0, "3-4": 7.0, "5-6": 5.0, "7-8": 3.0, "9+": 1.0}
NEUTRAL_SIMPLICITY = 5.0
LOGIN_FREQUENCY = {
    "nunca": 1.0, "never": 1.0,
    "raramente": 2.0, "rarely": 2.0,
    "a veces": 3.0, "sometimes": 3.0,
    "frecuentemente": 4.0, "often": 4.0, "frequently": 4.0,
    "siempre": 5.0, "always": 5.0,
}
WORKAROUND_ESTIMATES = {"0": 0.0, "1-3": 2.0, "4-7": 5.5, "8-12": 10.0, "13+": 13.0}
PIPELINE_REVIEWS_PER_MONTH = {
    "diariamente": 20.0, "daily": 20.0,
    "semanalmente": 4.0, "weekly": 4.0,
    "quincenalmente": 2.0, "biweekly": 2.0,
    "mensualmente": 1.0, "monthly": 1.0,
    "raramente": 0.5, "rarely": 0.5,
    "nunca": 0.0, "never": 0.0,
}
LEAD_LOSS_RATE_MIDPOINTS = {"0-5%": 2.5, "6-15%": 10.5, "16-25%": 20.5, "26-40%": 33.0, "40%+": 45.0}
LEAD_LOSS_INCIDENCE = {
    "nunca": 0.0, "never": 0.0,
    "raramente": 1.0, "rarely": 1.0,
    "a veces": 2.0, "sometimes": 2.0,
    "frecuentemente": 3.0, "frequently": 3.0,
    "constantemente": 4.0, "constantly": 4.0,
}
DATA_ACCESS_MINUTES = {
    "instantaneo": 0.0, "instant": 0.0,
    "<30 segundos": 0.25, "<30 seconds": 0.25,
    "1-2 minutos": 1.5, "1-2 minutes": 1.5,
    "3-5 minutos": 4.0, "3-5 minutes": 4.0,
    ">5 minutos": 7.5, ">5 minutes": 7.5,
}
NO_SELECTION = {"ninguno", "ninguna", "none"}
MANUAL_TRACKING_OPTIONS = 7
COMMUNICATION_GAP_OPTIONS = 6

FUNNEL_STAGES = ("Initial Inquiry", "Application Started", "Document Collection", "Review Process", "Decision Stage")
STAGE_ALIASES = {
    "initial inquiry": "Initial Inquiry",
    "inquiry": "Initial Inquiry",
    "contacto inicial": "Initial Inquiry",
    "consulta inicial": "Initial Inquiry",
    "primer contacto": "Initial Inquiry",
    "application started": "Application Started",
    "application": "Application Started",
    "solicitud iniciada": "Application Started",
    "inicio de solicitud": "Application Started",
    "aplicacion": "Application Started",
    "document collection": "Document Collection",
    "documents": "Document Collection",
    "documentos": "Document Collection",
    "recoleccion de documentos": "Document Collection",
    "review process": "Review Process",
    "review": "Review Process",
    "revision": "Review Process",
    "evaluacion": "Review Process",
    "decision stage": "Decision Stage",
    "decision": "Decision Stage",
    "cierre": "Decision Stage",
    "inscripcion": "Decision Stage",
}

TREND_DELTA = 0.5


def normalize_label(value: str) -> str:
    stripped = unicodedata.normalize("NFKD", str(value)).encode("ascii", "ignore").decode("ascii")
    return " ".join(stripped.strip().lower().split())


def lookup_choice(table: dict[str, float], choice: str) -> float | None:
    key = normalize_label(choice)
    if key in table:
        return table[key]
    # "Raramente (mensual)" -> "raramente"
    head = key.split("(", 1)[0].strip()
    return table.get(head)


def _normalized_table(table: dict[str, float]) -> dict[str, float]:
    return {normalize_label(k): v for k, v in table.items()}


def canonical_stage(label: str) -> str:
    return STAGE_ALIASES.get(normalize_label(label), str(label).strip())


def _mean(values: Iterable[float], *, default: float = 0.0) -> float:
    vals = list(values)
    if not vals:
        return default
    return sum(vals) / len(vals)


@dataclass
class Metric:
    name: str
    value: Any
    source_questions: list[int]
    response_count: int
    confidence: dict[str, Any]
    sample_size: int = 0
    unparseable: int = 0
    trend: str | None = None
    contributions: list[float] = field(default_factory=list)

    @property
    def has_data(self) -> bool:
        return self.sample_size > 0

    @property
    def data_status(self) -> str:
        if self.sample_size and self.unparseable:
            return "partial"
        if self.sample_size:
            return "ok"
        if self.unparseable:
            return "unparseable"
        return "no_data"

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "value": self.value,
            "sourceQuestions": list(self.source_questions),
            "responseCount": self.response_count,
            "sampleSize": self.sample_size,
            "confidence": dict(self.confidence),
            "dataStatus": self.data_status,
            "unparseableCount": self.unparseable,
            "trend": self.trend,
        }


@dataclass
class Contribution:
    value: float
    completed_at: datetime | None = None


class ResponseSet:
    """Answers of complete responses, indexed by question and bucket."""

    def __init__(
        self,
        questions: list[dict[str, Any]],
        responses: list[dict[str, Any]],
        answers: list[dict[str, Any]],
        *,
        now: datetime | None = None,
    ) -> None:
        self.now = now or datetime.now(timezone.utc)
        self.questions = {int(q["id"]): dict(q) for q in questions}
        complete = {int(r["id"]): dict(r) for r in responses if bool(r.get("is_complete"))}
        self.responses = complete
        self.answers = [dict(a) for a in answers if int(a["response_id"]) in complete]
        self.response_count = len(complete)
        self.index: BucketIndex = build_bucket_index(self.questions.values())

    @property
    def valid_count(self) -> int:
        return self.response_count

    def completed_at(self, response_id: int) -> datetime | None:
        value = (self.responses.get(int(response_id)) or {}).get("completed_at")
        return value if isinstance(value, datetime) else None

    def collect(
        self, question_type: QuestionType, bucket: Bucket
    ) -> tuple[list[tuple[dict[str, Any], ParsedAnswer]], list[int], int]:
        question_ids = self.index.get(question_type, bucket)
        wanted = set(question_ids)
        parsed: list[tuple[dict[str, Any], ParsedAnswer]] = []
        unparseable = 0
        for row in self.answers:
            if int(row["question_id"]) not in wanted:
                continue
            value = parse_answer(question_type.value, row.get("answer_value"), row.get("answer_numeric"))
            if isinstance(value, UnparseableAnswer):
                unparseable += 1
                continue
            parsed.append((row, value))
        return parsed, question_ids, unparseable


def _trend(contributions: list[Contribution], now: datetime) -> str | None:
    cutoff = now - timedelta(days=STATS_WINDOW_DAYS)
    recent = [c.value for c in contributions if c.completed_at and c.completed_at >= cutoff]
    older = [c.value for c in contributions if c.completed_at and c.completed_at < cutoff]
    if not recent or not older:
        return None
    delta = _mean(recent) - _mean(older)
    if delta > TREND_DELTA:
        return "improving"
    if delta < -TREND_DELTA:
        return "declining"
    return "stable"


def build_metric(
    rs: ResponseSet,
    name: str,
    contributions: list[Contribution],
    source_questions: list[int],
    unparseable: int = 0,
    *,
    value: Any = None,
    digits: int = 2,
    with_trend: bool = False,
) -> Metric:
    has_data = bool(contributions)
    if value is None:
        value = round(_mean(c.value for c in contributions), digits) if has_data else 0
    return Metric(
        name=name,
        value=value,
        source_questions=sorted(set(source_questions)),
        response_count=rs.response_count,
        confidence=build_confidence(rs.response_count, len(set(source_questions)), has_data=has_data),
        sample_size=len(contributions),
        unparseable=unparseable,
        trend=_trend(contributions, rs.now) if with_trend and has_data else None,
        contributions=[c.value for c in contributions],
    )


def combine_metric(rs: ResponseSet, name: str, value: Any, parts: list[Metric]) -> Metric:
    """Derived metric over other metrics; sample size is the smallest input sample."""
    used = [p for p in parts if p.has_data]
    sources = sorted({qid for p in parts for qid in p.source_questions})
    sample = min((p.sample_size for p in used), default=0)
    return Metric(
        name=name,
        value=value if used else 0,
        source_questions=sources,
        response_count=rs.response_count,
        confidence=build_confidence(rs.response_count, len(sources), has_data=bool(used)),
        sample_size=sample,
        unparseable=sum(p.unparseable for p in parts),
    )


def likert_metric(rs: ResponseSet, name: str, bucket: Bucket) -> Metric:
    parsed, qids, bad = rs.collect(QuestionType.LIKERT, bucket)
    contributions = [
        Contribution(value=ans.value, completed_at=rs.completed_at(row["response_id"]))
        for row, ans in parsed
        if isinstance(ans, LikertAnswer)
    ]
    return build_metric(rs, name, contributions, qids, bad, with_trend=True)


def choice_metric(
    rs: ResponseSet,
    name: str,
    bucket: Bucket,
    table: dict[str, float],
    *,
    default: float | None = None,
    transform: Callable[[float], float] | None = None,
) -> Metric:
    parsed, qids, bad = rs.collect(QuestionType.MULTIPLE_CHOICE, bucket)
    norm = _normalized_table(table)
    contributions: list[Contribution] = []
    for _, ans in parsed:
        if not isinstance(ans, ChoiceAnswer):
            continue
        number = lookup_choice(norm, ans.choice)
        if number is None:
            if default is None:
                bad += 1
                continue
            number = default
        contributions.append(Contribution(value=transform(number) if transform else number))
    return build_metric(rs, name, contributions, qids, bad)


def _selection_count(selected: list[str]) -> int:
    return len([s for s in selected if normalize_label(s) not in NO_SELECTION])


def checkbox_count_metric(rs: ResponseSet, name: str, bucket: Bucket, *, scale_to: int | None = None) -> Metric:
    parsed, qids, bad = rs.collect(QuestionType.CHECKBOX, bucket)
    contributions = []
    for _, ans in parsed:
        if isinstance(ans, CheckboxAnswer):
            count = float(_selection_count(ans.selected))
            if scale_to:
                count = min(10.0, count / scale_to * 10)
            contributions.append(Contribution(value=count))
    return build_metric(rs, name, contributions, qids, bad)


# Time allocation


def _time_allocations(rs: ResponseSet) -> tuple[list[PercentageAnswer], list[int], int]:
    parsed, qids, bad = rs.collect(QuestionType.PERCENTAGE, Bucket.TIME_ALLOCATION)
    return [ans for _, ans in parsed if isinstance(ans, PercentageAnswer)], qids, bad


def admin_time_ratio(allocations: list[PercentageAnswer]) -> list[float]:
    """Per-answer efficiency: sales / (sales + admin) * 10; zero denominators are skipped."""
    out = []
    for alloc in allocations:
        admin = alloc.share(ADMIN_LABELS)
        sales = alloc.share(SALES_LABELS)
        if admin + sales <= 0:
            continue
        out.append(sales / (sales + admin) * 10)
    return out


def calculate_time_metrics(rs: ResponseSet) -> dict[str, Metric]:
    allocations, alloc_qids, alloc_bad = _time_allocations(rs)
    admin = build_metric(rs, "adminTime", [Contribution(a.share(ADMIN_LABELS)) for a in allocations], alloc_qids, alloc_bad, digits=1)
    sales = build_metric(rs, "salesTime", [Contribution(a.share(SALES_LABELS)) for a in allocations], alloc_qids, alloc_bad, digits=1)
    ratio = build_metric(rs, "adminTimeRatio", [Contribution(v) for v in admin_time_ratio(allocations)], alloc_qids, alloc_bad)

    system_problem = choice_metric(rs, "systemProblemTime", Bucket.SYSTEM_PROBLEM_TIME, SYSTEM_PROBLEM_TIME_MIDPOINTS)
    strategic = combine_metric(
        rs,
        "strategicTime",
        round(100 - float(system_problem.value), 1),
        [system_problem],
    )

    efficiency_value: float = 0
    if admin.has_data and sales.has_data and float(admin.value) + float(sales.value) > 0:
        raw = float(sales.value) / (float(admin.value) + float(sales.value))
        strategic_factor = 1 + float(strategic.value) / 100 if strategic.has_data else 1
        efficiency_value = min(10.0, round(raw * strategic_factor * 10, 1))
    efficiency = combine_metric(rs, "timeEfficiencyScore", efficiency_value, [admin, sales, strategic])
    if not (admin.has_data and sales.has_data):
        efficiency.sample_size = 0
        efficiency.value = 0
        efficiency.confidence = build_confidence(rs.response_count, len(efficiency.source_questions), has_data=False)

    return {
        "adminTime": admin,
        "salesTime": sales,
        "adminTimeRatio": ratio,
        "systemProblemTime": system_problem,
        "strategicTime": strategic,
        "timeEfficiencyScore": efficiency,
    }


# System complexity


def calculate_system_metrics(rs: ResponseSet) -> dict[str, Metric]:
    tool_count = choice_metric(rs, "toolCount", Bucket.TOOL_COUNT, TOOL_COUNT_ESTIMATES)
    # Unmatched tool-count options silently score as the neutral midpoint, which
    # masks unexpected option labels instead of counting them as invalid.
    complexity = choice_metric(rs, "systemComplexity", Bucket.TOOL_COUNT, TOOL_SIMPLICITY, default=NEUTRAL_SIMPLICITY)
    login = choice_metric(rs, "loginFragmentation", Bucket.LOGIN_FRAGMENTATION, LOGIN_FREQUENCY)
    workarounds = choice_metric(rs, "workaroundPrevalence", Bucket.WORKAROUND_COUNT, WORKAROUND_ESTIMATES)
    manual = checkbox_count_metric(rs, "manualTrackingMethods", Bucket.MANUAL_TRACKING)

    parsed, qids, bad = rs.collect(QuestionType.TEXT, Bucket.CRITICAL_WORKAROUNDS)
    texts: list[str] = []
    for _, ans in parsed:
        if isinstance(ans, TextAnswer) and ans.text.strip() and ans.text.strip() not in texts:
            texts.append(ans.text.strip())
    critical = build_metric(
        rs,
        "criticalWorkarounds",
        [Contribution(1.0) for _ in texts],
        qids,
        bad,
        value=texts[:10],
    )

    components: list[float] = []
    if complexity.has_data:
        components.append(10 - float(complexity.value))
    if login.has_data:
        components.append((float(login.value) - 1) / 4 * 10)
    if workarounds.has_data:
        components.append(min(10.0, float(workarounds.value) / 13 * 10))
    if manual.has_data:
        components.append(min(10.0, float(manual.value) / MANUAL_TRACKING_OPTIONS * 10))
    overall = combine_metric(
        rs,
        "overallComplexityScore",
        round(_mean(components), 1),
        [complexity, login, workarounds, manual],
    )

    return {
        "toolCount": tool_count,
        "systemComplexity": complexity,
        "loginFragmentation": login,
        "workaroundPrevalence": workarounds,
        "manualTrackingMethods": manual,
        "criticalWorkarounds": critical,
        "overallComplexityScore": overall,
    }


# Team collaboration


def calculate_collaboration_metrics(rs: ResponseSet) -> dict[str, Metric]:
    sharing = likert_metric(rs, "informationSharingQuality", Bucket.INFORMATION_SHARING)
    handoff = likert_metric(rs, "handoffEffectiveness", Bucket.HANDOFF_QUALITY)
    gap = checkbox_count_metric(rs, "communicationGap", Bucket.COMMUNICATION_GAPS, scale_to=COMMUNICATION_GAP_OPTIONS)
    reviews = choice_metric(rs, "pipelineReviewFrequency", Bucket.PIPELINE_REVIEWS, PIPELINE_REVIEWS_PER_MONTH)

    parts = [float(m.value) for m in (sharing, handoff) if m.has_data]
    if gap.has_data:
        parts.append(10 - float(gap.value))
    overall = combine_metric(rs, "overallCollaborationScore", round(_mean(parts), 1), [sharing, handoff, gap])

    return {
        "informationSharingQuality": sharing,
        "handoffEffectiveness": handoff,
        "communicationGap": gap,
        "pipelineReviewFrequency": reviews,
        "overallCollaborationScore": overall,
    }


# Process bottlenecks


def stage_loss_shares(rs: ResponseSet) -> tuple[dict[str, float], list[int], int, int]:
    """Mean reported loss share per canonical funnel stage."""
    parsed, qids, bad = rs.collect(QuestionType.PERCENTAGE, Bucket.CONVERSION_STAGES)
    totals: dict[str, list[float]] = {}
    answered = 0
    for _, ans in parsed:
        if not isinstance(ans, PercentageAnswer):
            continue
        answered += 1
        for label, pct in ans.allocation.items():
            totals.setdefault(canonical_stage(label), []).append(pct)
    shares = {stage: _mean(values) for stage, values in totals.items()}
    return shares, qids, bad, answered


def calculate_process_metrics(rs: ResponseSet) -> dict[str, Metric]:
    loss_rate = choice_metric(rs, "leadLossFrequency", Bucket.LEAD_LOSS_RATE, LEAD_LOSS_RATE_MIDPOINTS)
    incidence = choice_metric(
        rs, "leadLossIncidence", Bucket.LEAD_LOSS_INCIDENCE, LEAD_LOSS_INCIDENCE, transform=lambda v: v * 2.5
    )
    tracking = likert_metric(rs, "leadTrackingConfidence", Bucket.LEAD_TRACKING)
    access = choice_metric(rs, "dataAccessTime", Bucket.DATA_ACCESS, DATA_ACCESS_MINUTES)

    shares, stage_qids, stage_bad, answered = stage_loss_shares(rs)
    primary_stage = "Unknown"
    if shares:
        # Highest mean share; ties resolve to the earlier funnel stage.
        order = {name: i for i, name in enumerate(FUNNEL_STAGES)}
        primary_stage = sorted(shares.items(), key=lambda kv: (-kv[1], order.get(kv[0], len(order)), kv[0]))[0][0]
    primary = build_metric(
        rs,
        "primaryLossStage",
        [Contribution(1.0) for _ in range(answered)],
        stage_qids,
        stage_bad,
        value=primary_stage,
    )

    components: list[float] = []
    if loss_rate.has_data:
        components.append(min(10.0, float(loss_rate.value) / 45 * 10))
    if incidence.has_data:
        components.append(float(incidence.value))
    if tracking.has_data:
        components.append(10 - float(tracking.value))
    if access.has_data:
        components.append(min(10.0, float(access.value) / 7.5 * 10))
    overall = combine_metric(
        rs, "overallBottleneckScore", round(_mean(components), 1), [loss_rate, incidence, tracking, access]
    )

    return {
        "leadLossFrequency": loss_rate,
        "leadLossIncidence": incidence,
        "primaryLossStage": primary,
        "leadTrackingConfidence": tracking,
        "dataAccessTime": access,
        "overallBottleneckScore": overall,
    }


# Likert business scales

BUSINESS_METRIC_BUCKETS: dict[str, Bucket] = {
    "workflowEffectiveness": Bucket.WORKFLOW_EFFECTIVENESS,
    "processOptimization": Bucket.PROCESS_OPTIMIZATION,
    "taskCompletion": Bucket.TASK_COMPLETION,
    "managerEffectiveness": Bucket.MANAGER_EFFECTIVENESS,
    "salesProductivity": Bucket.SALES_PRODUCTIVITY,
    "collaborationQuality": Bucket.COLLABORATION_QUALITY,
    "workflowEfficiency": Bucket.WORKFLOW_EFFICIENCY,
    "dataQuality": Bucket.DATA_QUALITY,
    "leadConversion": Bucket.LEAD_CONVERSION,
}


def calculate_business_metrics(rs: ResponseSet) -> dict[str, Metric]:
    return {name: likert_metric(rs, name, bucket) for name, bucket in BUSINESS_METRIC_BUCKETS.items()}


def calculate_all_metrics(rs: ResponseSet) -> dict[str, dict[str, Metric]]:
    return {
        "time": calculate_time_metrics(rs),
        "system": calculate_system_metrics(rs),
        "collaboration": calculate_collaboration_metrics(rs),
        "process": calculate_process_metrics(rs),
        "business": calculate_business_metrics(rs),
    }


def metrics_to_dict(metrics: dict[str, Metric]) -> dict[str, dict[str, Any]]:
    return {name: metric.to_dict() for name, metric in metrics.items()}
