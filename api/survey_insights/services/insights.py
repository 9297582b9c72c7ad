from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from .answers import QuestionType, TextAnswer
from .metrics import Metric, ResponseSet
from .question_buckets import Bucket

CATEGORY_BY_SEVERITY = {
    "critical": "CRITICAL",
    "warning": "OPPORTUNITY",
    "positive": "SUCCESS",
    "info": "RECOMMENDATION",
}
IMPACT_BY_SEVERITY = {"critical": "HIGH", "warning": "MEDIUM", "positive": "LOW", "info": "LOW"}

CRITICAL_ANSWER = 2
WARNING_ANSWER = 3
CELEBRATION_ANSWER = 9
SUCCESS_VALUE = 8.0
MIN_TEXT_LENGTH = 10
LOW_STRATEGIC_TIME = 50.0
HIGH_SYSTEM_PROBLEM_TIME = 30.0

# Blunt keyword heuristic: a match anywhere in a long-enough answer is flagged,
# including negated or quoted uses ("nunca tuve problemas").
CRITICAL_KEYWORDS = (
    "imposible",
    "nunca",
    "terrible",
    "horrible",
    "pésimo",
    "pesimo",
    "frustrante",
    "inútil",
    "inutil",
    "no funciona",
    "caótico",
    "caotico",
    "perdemos",
    "muy lento",
)


@dataclass
class Insight:
    id: str
    severity: str
    title: str
    description: str
    source_metrics: list[str] = field(default_factory=list)
    source_questions: list[int] = field(default_factory=list)
    confidence: float = 0.0

    @property
    def category(self) -> str:
        return CATEGORY_BY_SEVERITY[self.severity]

    @property
    def impact(self) -> str:
        return IMPACT_BY_SEVERITY[self.severity]

    @property
    def action_required(self) -> bool:
        return self.severity in ("critical", "warning")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "severity": self.severity,
            "title": self.title,
            "description": self.description,
            "impact": self.impact,
            "actionRequired": self.action_required,
            "sourceMetrics": list(self.source_metrics),
            "sourceQuestions": list(self.source_questions),
            "confidence": self.confidence,
        }


def _insight(insight_id: str, severity: str, title: str, description: str, *metrics: Metric) -> Insight:
    return Insight(
        id=insight_id,
        severity=severity,
        title=title,
        description=description,
        source_metrics=[m.name for m in metrics],
        source_questions=sorted({qid for m in metrics for qid in m.source_questions}),
        confidence=min((float(m.confidence.get("score", 0.0)) for m in metrics), default=0.0),
    )


def _slug(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "-", name).lower()


def _label(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", " ", name).title()


def likert_insights(
    metric: Metric,
    *,
    critical_below: float | None = None,
    warning_below: float | None = None,
    negative_id: str | None = None,
    positive_id: str | None = None,
    title: str | None = None,
) -> list[Insight]:
    """At most one negative and one positive insight for a 1-10 scale."""
    if not metric.has_data:
        return []
    value = float(metric.value)
    answers = metric.contributions
    label = title or _label(metric.name)
    slug = _slug(metric.name)
    out: list[Insight] = []

    lowest = min(answers)
    if lowest <= CRITICAL_ANSWER or (critical_below is not None and value < critical_below):
        out.append(
            _insight(
                negative_id or f"{slug}-critical",
                "critical",
                f"Critical {label} Issue",
                f"{label} averages {value:.1f}/10 and at least one respondent scored it {lowest:.0f} or lower",
                metric,
            )
        )
    elif lowest <= WARNING_ANSWER or (warning_below is not None and value < warning_below):
        out.append(
            _insight(
                negative_id or f"{slug}-opportunity",
                "warning",
                f"{label} Improvement Opportunity",
                f"{label} averages {value:.1f}/10 with low scores reported by some respondents",
                metric,
            )
        )

    if value >= SUCCESS_VALUE:
        out.append(
            _insight(
                positive_id or f"{slug}-success",
                "positive",
                f"Strong {label}",
                f"{label} averages {value:.1f}/10, which indicates consistently positive feedback",
                metric,
            )
        )
    elif max(answers) >= CELEBRATION_ANSWER:
        out.append(
            _insight(
                f"{slug}-celebration",
                "positive",
                f"{label} Highlights",
                f"Some respondents rated {label.lower()} {max(answers):.0f}/10; these practices are worth sharing",
                metric,
            )
        )
    return out


def generate_time_insights(metrics: dict[str, Metric]) -> list[Insight]:
    out: list[Insight] = []
    admin = metrics["adminTime"]
    sales = metrics["salesTime"]
    strategic = metrics["strategicTime"]
    system_problem = metrics["systemProblemTime"]
    efficiency = metrics["timeEfficiencyScore"]

    if admin.has_data:
        if admin.value > 40:
            out.append(
                _insight(
                    "high-admin-time",
                    "warning",
                    "High Administrative Time Burden",
                    f"Staff spend {admin.value:.0f}% of time on administrative tasks, which is significantly above the optimal range (20-30%)",
                    admin,
                )
            )
        elif admin.value < 20:
            out.append(
                _insight(
                    "low-admin-time",
                    "positive",
                    "Excellent Administrative Efficiency",
                    f"Staff spend only {admin.value:.0f}% of time on administrative tasks, which is within the optimal range",
                    admin,
                )
            )

    if system_problem.has_data and strategic.value < LOW_STRATEGIC_TIME and system_problem.value > HIGH_SYSTEM_PROBLEM_TIME:
        out.append(
            _insight(
                "low-strategic-time",
                "critical",
                "Low Strategic Planning Time",
                "Managers spend significantly more time addressing system problems than on strategic planning",
                strategic,
                system_problem,
            )
        )

    if admin.has_data and sales.has_data and float(admin.value) > 0:
        ratio = float(sales.value) / float(admin.value)
        if ratio < 0.8:
            out.append(
                _insight(
                    "poor-time-allocation",
                    "warning",
                    "Poor Time Allocation Balance",
                    f"Staff spend more time on administrative tasks than core sales activities (ratio: {ratio:.1f}:1)",
                    sales,
                    admin,
                )
            )
        elif ratio > 2:
            out.append(
                _insight(
                    "excellent-time-allocation",
                    "positive",
                    "Excellent Time Allocation Balance",
                    f"Staff spend significantly more time on core sales activities than administrative tasks (ratio: {ratio:.1f}:1)",
                    sales,
                    admin,
                )
            )

    if efficiency.has_data:
        if efficiency.value < 5:
            out.append(
                _insight(
                    "low-time-efficiency",
                    "critical",
                    "Low Overall Time Efficiency",
                    f"The overall time efficiency score of {efficiency.value:.1f}/10 indicates significant opportunities for process improvement",
                    efficiency,
                )
            )
        elif efficiency.value >= 8:
            out.append(
                _insight(
                    "high-time-efficiency",
                    "positive",
                    "High Overall Time Efficiency",
                    f"The overall time efficiency score of {efficiency.value:.1f}/10 indicates excellent process optimization",
                    efficiency,
                )
            )
    return out


def generate_system_insights(metrics: dict[str, Metric]) -> list[Insight]:
    out: list[Insight] = []
    tools = metrics["toolCount"]
    login = metrics["loginFragmentation"]
    workarounds = metrics["workaroundPrevalence"]
    critical = metrics["criticalWorkarounds"]
    overall = metrics["overallComplexityScore"]

    if tools.has_data and tools.value > 5:
        out.append(
            _insight(
                "high-tool-count",
                "warning",
                "Excessive Tool Count",
                f"Staff use {tools.value:.1f} different tools on average, which is above the recommended maximum of 5",
                tools,
            )
        )
    if login.has_data and login.value > 3:
        out.append(
            _insight(
                "high-login-fragmentation",
                "warning",
                "Multiple Login Requirements",
                f"Login fragmentation of {login.value:.1f}/5 means staff regularly sign into several systems to finish one task",
                login,
            )
        )
    if workarounds.has_data and workarounds.value > 3:
        out.append(
            _insight(
                "high-workaround-prevalence",
                "critical",
                "High Reliance on Workarounds",
                "Staff frequently use workarounds to compensate for system limitations",
                workarounds,
            )
        )
    if critical.has_data and critical.value:
        out.append(
            _insight(
                "critical-workarounds-identified",
                "critical",
                "Critical Workarounds Identified",
                f"{len(critical.value)} critical workarounds were identified, including: {', '.join(critical.value)}",
                critical,
            )
        )
    if overall.has_data:
        if overall.value > 6:
            out.append(
                _insight(
                    "high-system-complexity",
                    "warning",
                    "High Overall System Complexity",
                    f"The system complexity score of {overall.value:.1f}/10 indicates significant opportunities for simplification",
                    overall,
                )
            )
        elif overall.value <= 3:
            out.append(
                _insight(
                    "low-system-complexity",
                    "positive",
                    "Excellent System Simplicity",
                    f"The system complexity score of {overall.value:.1f}/10 indicates a well-optimized system architecture",
                    overall,
                )
            )
    return out


def generate_collaboration_insights(metrics: dict[str, Metric]) -> list[Insight]:
    out: list[Insight] = []
    out.extend(
        likert_insights(
            metrics["informationSharingQuality"],
            critical_below=6,
            negative_id="poor-information-sharing",
            positive_id="excellent-information-sharing",
            title="Information Sharing",
        )
    )
    out.extend(
        likert_insights(
            metrics["handoffEffectiveness"],
            warning_below=6,
            negative_id="poor-handoff-effectiveness",
            positive_id="effective-handoffs",
            title="Handoff Effectiveness",
        )
    )

    gap = metrics["communicationGap"]
    if gap.has_data and gap.value > 5:
        out.append(
            _insight(
                "large-communication-gap",
                "critical",
                "Large Communication Gap",
                f"Communication gap score of {gap.value:.1f}/10 indicates misalignment between team members",
                gap,
            )
        )

    reviews = metrics["pipelineReviewFrequency"]
    if reviews.has_data:
        if reviews.value < 2:
            out.append(
                _insight(
                    "infrequent-pipeline-reviews",
                    "warning",
                    "Infrequent Pipeline Reviews",
                    f"Pipeline reviews occur only {reviews.value:.1f} times per month, which is below the recommended minimum of 2",
                    reviews,
                )
            )
        elif reviews.value >= 4:
            out.append(
                _insight(
                    "frequent-pipeline-reviews",
                    "positive",
                    "Frequent Pipeline Reviews",
                    f"Pipeline reviews occur {reviews.value:.1f} times per month, which indicates strong management engagement",
                    reviews,
                )
            )

    overall = metrics["overallCollaborationScore"]
    if overall.has_data:
        if overall.value < 6:
            out.append(
                _insight(
                    "poor-team-collaboration",
                    "critical",
                    "Poor Overall Team Collaboration",
                    f"The overall collaboration score of {overall.value:.1f}/10 indicates significant team alignment issues",
                    overall,
                )
            )
        elif overall.value >= 8:
            out.append(
                _insight(
                    "excellent-team-collaboration",
                    "positive",
                    "Excellent Team Collaboration",
                    f"The overall collaboration score of {overall.value:.1f}/10 indicates strong team cohesion",
                    overall,
                )
            )
    return out


def generate_process_insights(metrics: dict[str, Metric]) -> list[Insight]:
    out: list[Insight] = []
    loss = metrics["leadLossFrequency"]
    if loss.has_data:
        if loss.value > 20:
            out.append(
                _insight(
                    "high-lead-loss",
                    "critical",
                    "High Lead Loss Rate",
                    f"{loss.value:.0f}% of leads are lost during the application process, which is above the acceptable threshold",
                    loss,
                )
            )
        elif loss.value <= 10:
            out.append(
                _insight(
                    "low-lead-loss",
                    "positive",
                    "Excellent Lead Retention",
                    f"Only {loss.value:.0f}% of leads are lost during the application process, which is below the industry average",
                    loss,
                )
            )

    stage = metrics["primaryLossStage"]
    if stage.has_data and stage.value != "Unknown":
        out.append(
            _insight(
                "primary-loss-stage",
                "warning",
                "Primary Lead Loss Stage Identified",
                f'The "{stage.value}" stage accounts for the highest percentage of lead losses',
                stage,
            )
        )

    out.extend(
        likert_insights(
            metrics["leadTrackingConfidence"],
            warning_below=6,
            negative_id="low-lead-tracking-confidence",
            positive_id="high-lead-tracking-confidence",
            title="Lead Tracking Confidence",
        )
    )

    access = metrics["dataAccessTime"]
    if access.has_data:
        if access.value > 5:
            out.append(
                _insight(
                    "slow-data-access",
                    "warning",
                    "Slow Data Access",
                    f"Staff spend an average of {access.value:.1f} minutes accessing required data, which creates process friction",
                    access,
                )
            )
        elif access.value <= 2:
            out.append(
                _insight(
                    "fast-data-access",
                    "positive",
                    "Excellent Data Access Speed",
                    f"Staff spend an average of only {access.value:.1f} minutes accessing required data, which indicates efficient information systems",
                    access,
                )
            )

    overall = metrics["overallBottleneckScore"]
    if overall.has_data:
        if overall.value > 6:
            out.append(
                _insight(
                    "significant-process-bottlenecks",
                    "critical",
                    "Significant Process Bottlenecks",
                    f"The overall bottleneck score of {overall.value:.1f}/10 indicates major process flow issues",
                    overall,
                )
            )
        elif overall.value <= 3:
            out.append(
                _insight(
                    "minimal-process-bottlenecks",
                    "positive",
                    "Minimal Process Bottlenecks",
                    f"The overall bottleneck score of {overall.value:.1f}/10 indicates smooth process flows",
                    overall,
                )
            )
    return out


def generate_business_insights(metrics: dict[str, Metric]) -> list[Insight]:
    out: list[Insight] = []
    for metric in metrics.values():
        out.extend(likert_insights(metric, critical_below=4, warning_below=6))
    return out


def scan_text_answers(rs: ResponseSet) -> list[Insight]:
    """One CRITICAL insight per free-text answer containing a critical keyword."""
    out: list[Insight] = []
    text_ids = set(rs.index.get(QuestionType.TEXT, Bucket.FREE_TEXT))
    for row in rs.answers:
        qid = int(row["question_id"])
        if qid not in text_ids:
            continue
        raw = row.get("answer_value")
        if not isinstance(raw, str) or len(raw.strip()) <= MIN_TEXT_LENGTH:
            continue
        answer = TextAnswer(text=raw)
        lowered = answer.text.lower()
        matched = [kw for kw in CRITICAL_KEYWORDS if kw in lowered]
        if not matched:
            continue
        question = rs.questions.get(qid) or {}
        excerpt = answer.text.strip()
        if len(excerpt) > 160:
            excerpt = excerpt[:157] + "..."
        out.append(
            Insight(
                id=f"text-critical-{row['id']}",
                severity="critical",
                title="Critical Feedback in Open Response",
                description=f'"{excerpt}" ({question.get("section") or "Open response"})',
                source_metrics=["freeTextFeedback"],
                source_questions=[qid],
                confidence=0.5,
            )
        )
    return out


def generate_all_insights(metric_groups: dict[str, dict[str, Metric]], rs: ResponseSet | None = None) -> dict[str, list[Insight]]:
    insights = {
        "time": generate_time_insights(metric_groups["time"]),
        "system": generate_system_insights(metric_groups["system"]),
        "collaboration": generate_collaboration_insights(metric_groups["collaboration"]),
        "process": generate_process_insights(metric_groups["process"]),
        "business": generate_business_insights(metric_groups["business"]),
        "text": scan_text_answers(rs) if rs is not None else [],
    }
    return insights


def flatten_insights(groups: dict[str, list[Insight]]) -> list[Insight]:
    return [insight for items in groups.values() for insight in items]
