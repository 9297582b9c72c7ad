"""Assembles the analytics payloads served under /api/analytics."""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime
from typing import Any

from ..config import FUNNEL_BASE_LEADS, TRENDS_WINDOW_MONTHS
from .answers import CheckboxAnswer, QuestionType
from .funnel import bottleneck_indicators, build_funnel, stage_timing
from .insights import Insight, flatten_insights, generate_all_insights
from .metrics import Metric, ResponseSet, calculate_all_metrics, metrics_to_dict, normalize_label, stage_loss_shares
from .presentation import (
    calculate_implementation_metrics,
    filter_recommendations_by_role,
    focus_areas_for_role,
    group_recommendations_by_category,
    quick_wins,
    recommendation_detail,
)
from .question_buckets import Bucket, has_tag
from .recommendations import Recommendation, prioritize_recommendations

ISSUE_THRESHOLD = 4.5
PROBLEM_THRESHOLD = 4
CRITICAL_THRESHOLD = 3
STRENGTH_THRESHOLD = 8
DEFAULT_HEALTH = 5.0
ISSUE_CATEGORIES = (
    ("time_efficiency", "EFFICIENCY"),
    ("data_quality", "DATA_QUALITY"),
    ("lead_conversion", "LEAD_MANAGEMENT"),
    ("productivity", "PRODUCTIVITY"),
)


class Analysis:
    """Metrics, insights and recommendations computed once per request."""

    def __init__(self, rs: ResponseSet) -> None:
        self.rs = rs
        self.metrics = calculate_all_metrics(rs)
        self.insight_groups = generate_all_insights(self.metrics, rs)
        self.insights: list[Insight] = flatten_insights(self.insight_groups)
        self.recommendations: list[Recommendation] = prioritize_recommendations(self.insights)

    @property
    def data_quality(self) -> str:
        count = self.rs.valid_count
        return "high" if count > 20 else "medium" if count > 10 else "low"


def _avg(values: list[float]) -> float | None:
    return sum(values) / len(values) if values else None


def _round(value: float | None, digits: int = 2) -> float | None:
    return round(value, digits) if value is not None else None


def _numeric_rows(rs: ResponseSet) -> list[tuple[dict[str, Any], dict[str, Any], float]]:
    out = []
    for row in rs.answers:
        if row.get("answer_numeric") is None:
            continue
        question = rs.questions.get(int(row["question_id"]))
        if question is None:
            continue
        out.append((row, question, float(row["answer_numeric"])))
    return out


def participation_stats(rs: ResponseSet) -> dict[str, Any]:
    responses = list(rs.responses.values())
    times = [float(r["response_time_seconds"]) for r in responses if r.get("response_time_seconds") is not None]
    total = len(responses)
    return {
        "total_responses": total,
        "avg_completion_time": round(_avg(times) or 0),
        "manager_participation": len([r for r in responses if r.get("target_role") == "manager"]),
        "sales_participation": len([r for r in responses if r.get("target_role") == "sales"]),
        "participation_rate": "HIGH" if total > 15 else "MODERATE" if total > 8 else "LOW",
        "data_confidence": "HIGH" if total > 20 else "MODERATE" if total > 10 else "LIMITED",
    }


def tag_system_metrics(rs: ResponseSet) -> dict[str, Any]:
    rows = _numeric_rows(rs)

    def by_tag(tag: str) -> float | None:
        return _avg([v for _, q, v in rows if has_tag(q, tag)])

    values = [v for _, _, v in rows]
    return {
        "lead_tracking_effectiveness": by_tag("lead_conversion"),
        "data_quality_score": by_tag("data_quality"),
        "time_efficiency_score": by_tag("time_efficiency"),
        "productivity_score": by_tag("productivity"),
        "critical_issues": len([v for v in values if v <= CRITICAL_THRESHOLD]),
        "high_performance_areas": len([v for v in values if v >= STRENGTH_THRESHOLD]),
        "overall_satisfaction": _avg(values),
    }


def system_health(tag_metrics: dict[str, Any]) -> dict[str, Any]:
    def score(key: str) -> float:
        value = tag_metrics.get(key)
        return round(value if value is not None else DEFAULT_HEALTH, 1)

    return {
        "overall_health_score": score("overall_satisfaction"),
        "efficiency_index": score("time_efficiency_score"),
        "data_reliability": score("data_quality_score"),
        "user_productivity": score("productivity_score"),
        "lead_management_score": score("lead_tracking_effectiveness"),
        "critical_failure_rate": tag_metrics.get("critical_issues") or 0,
        "excellence_indicators": tag_metrics.get("high_performance_areas") or 0,
    }


def section_performance(rs: ResponseSet) -> list[dict[str, Any]]:
    grouped: dict[str, list[tuple[dict[str, Any], float]]] = defaultdict(list)
    for row, question, value in _numeric_rows(rs):
        grouped[str(question.get("section") or "")].append((row, value))
    out = []
    for section, items in grouped.items():
        confidences = [float(r["confidence_score"]) for r, _ in items if r.get("confidence_score") is not None]
        out.append(
            {
                "section": section,
                "avg_score": _round(_avg([v for _, v in items])),
                "response_count": len({int(r["response_id"]) for r, _ in items}),
                "problem_indicators": len([v for _, v in items if v <= PROBLEM_THRESHOLD]),
                "confidence_level": _round(_avg(confidences)),
            }
        )
    return sorted(out, key=lambda s: (s["avg_score"], s["section"]))


def issue_category(question: dict[str, Any]) -> str:
    for tag, category in ISSUE_CATEGORIES:
        if has_tag(question, tag):
            return category
    return "SYSTEM_USABILITY"


def process_issues(rs: ResponseSet, limit: int = 10) -> list[dict[str, Any]]:
    grouped: dict[int, list[float]] = defaultdict(list)
    for row, _, value in _numeric_rows(rs):
        if value <= ISSUE_THRESHOLD:
            grouped[int(row["question_id"])].append(value)
    out = []
    for qid, values in grouped.items():
        question = rs.questions[qid]
        out.append(
            {
                "question_id": qid,
                "section": question.get("section"),
                "question_text": question.get("question_text"),
                "severity_score": _round(_avg(values)),
                "frequency": len(values),
                "analysis_tags": question.get("analysis_tags"),
                "issue_category": issue_category(question),
            }
        )
    out.sort(key=lambda i: (i["severity_score"], -i["frequency"], i["question_id"]))
    return out[:limit]


def efficiency_by_team(rs: ResponseSet) -> list[dict[str, Any]]:
    grouped: dict[str, list[tuple[dict[str, Any], float]]] = defaultdict(list)
    for row, _, value in _numeric_rows(rs):
        response = rs.responses.get(int(row["response_id"])) or {}
        grouped[str(response.get("target_role") or "unknown")].append((response, value))
    out = []
    for team, items in sorted(grouped.items()):
        responses = {int(r["id"]): r for r, _ in items}
        times = [float(r["response_time_seconds"]) for r in responses.values() if r.get("response_time_seconds") is not None]
        values = [v for _, v in items]
        out.append(
            {
                "team": team,
                "performance_score": _round(_avg(values)),
                "pain_points": len([v for v in values if v <= CRITICAL_THRESHOLD]),
                "strengths": len([v for v in values if v >= STRENGTH_THRESHOLD]),
                "sample_size": len(responses),
                "avg_completion_time": _round(_avg(times)),
            }
        )
    return out


def _month_index(value: datetime) -> int:
    return value.year * 12 + value.month - 1


def performance_trends(rs: ResponseSet) -> list[dict[str, Any]]:
    current = _month_index(rs.now)
    grouped: dict[str, list[tuple[dict[str, Any], float]]] = defaultdict(list)
    for row, _, value in _numeric_rows(rs):
        response = rs.responses.get(int(row["response_id"])) or {}
        completed = response.get("completed_at")
        if not isinstance(completed, datetime):
            continue
        if current - _month_index(completed) >= TRENDS_WINDOW_MONTHS:
            continue
        grouped[completed.strftime("%Y-%m")].append((response, value))
    out = []
    for month in sorted(grouped):
        items = grouped[month]
        responses = {int(r["id"]): r for r, _ in items}
        times = [float(r["response_time_seconds"]) for r in responses.values() if r.get("response_time_seconds") is not None]
        values = [v for _, v in items]
        out.append(
            {
                "month": month,
                "avg_performance": _round(_avg(values)),
                "response_count": len(responses),
                "issues_reported": len([v for v in values if v <= CRITICAL_THRESHOLD]),
                "avg_completion_time": _round(_avg(times)),
            }
        )
    return out[-TRENDS_WINDOW_MONTHS:]


def achievements(participation: dict[str, Any], tag_metrics: dict[str, Any], trends: list[dict[str, Any]]) -> list[dict[str, Any]]:
    out = []
    total = participation["total_responses"]
    if total >= 20:
        out.append({"id": "strong-participation", "type": "participation", "title": "Strong Participation", "description": f"{total} completed responses give the analysis a solid base"})
    elif total >= 10:
        out.append({"id": "growing-participation", "type": "participation", "title": "Growing Participation", "description": f"{total} completed responses collected so far"})

    strengths = tag_metrics.get("high_performance_areas") or 0
    pains = tag_metrics.get("critical_issues") or 0
    if strengths and strengths > pains:
        out.append({"id": "more-strengths-than-pain-points", "type": "quality", "title": "More Strengths Than Pain Points", "description": f"{strengths} high ratings against {pains} critical ones"})
    satisfaction = tag_metrics.get("overall_satisfaction")
    if satisfaction is not None and satisfaction >= 7:
        out.append({"id": "high-satisfaction", "type": "quality", "title": "High Satisfaction", "description": f"Average rating of {satisfaction:.1f}/10 across all scaled questions"})

    if len(trends) >= 2:
        last, prev = trends[-1]["avg_performance"], trends[-2]["avg_performance"]
        if last is not None and prev is not None and last > prev:
            out.append({"id": "improving-trend", "type": "improvement", "title": "Improving Trend", "description": f"Average rating rose from {prev:.1f} to {last:.1f} month over month"})
    return out


def actionable_insights(insights: list[Insight], recommendations: list[Recommendation]) -> dict[str, Any]:
    def by_severity(severity: str) -> list[Insight]:
        return sorted([i for i in insights if i.severity == severity], key=lambda i: (-i.confidence, i.id))

    return {
        "immediateActions": [i.to_dict() for i in by_severity("critical")[:5]],
        "strategicRecommendations": [r.to_dict() for r in recommendations[:3]],
        "celebrationWorthy": [i.to_dict() for i in by_severity("positive")],
        "improvementOpportunities": [i.to_dict() for i in by_severity("warning")],
    }


def build_dashboard(analysis: Analysis, *, now: datetime | None = None) -> dict[str, Any]:
    rs = analysis.rs
    now = now or rs.now
    participation = participation_stats(rs)
    tag_metrics = tag_system_metrics(rs)
    health = system_health(tag_metrics)
    sections = section_performance(rs)
    issues = process_issues(rs)
    trends = performance_trends(rs)
    return {
        "summary": {
            **participation,
            "systemHealth": health["overall_health_score"],
            "criticalIssues": health["critical_failure_rate"],
            "lastUpdated": now.isoformat(),
        },
        "systemHealth": health,
        "sectionPerformance": sections,
        "processIssues": issues,
        "efficiencyMetrics": efficiency_by_team(rs),
        "performanceTrends": trends,
        "achievements": achievements(participation, tag_metrics, trends),
        "actionableInsights": actionable_insights(analysis.insights, analysis.recommendations),
        "businessMetrics": metrics_to_dict(analysis.metrics["business"]),
        "insights": {
            "topConcern": issues[0]["issue_category"] if issues else "No major issues identified",
            "improvementArea": sections[0]["section"] if sections else "System performing well",
            "strongestArea": sections[-1]["section"] if sections else "Multiple areas performing well",
            "items": [i.to_dict() for i in analysis.insights],
        },
    }


def health_score(metrics: dict[str, dict[str, Metric]]) -> float:
    time_score = float(metrics["time"]["timeEfficiencyScore"].value)
    system_score = 10 - float(metrics["system"]["overallComplexityScore"].value)
    team_score = float(metrics["collaboration"]["overallCollaborationScore"].value)
    process_score = 10 - float(metrics["process"]["overallBottleneckScore"].value)
    weighted = time_score * 0.3 + system_score * 0.2 + team_score * 0.2 + process_score * 0.3
    return round(weighted, 1)


def health_status(score: float) -> str:
    if score >= 7.5:
        return "Good"
    if score >= 5:
        return "Fair"
    return "Needs Attention"


def build_summary(analysis: Analysis, role: str, *, now: datetime | None = None) -> dict[str, Any]:
    rs = analysis.rs
    now = now or rs.now
    m = analysis.metrics
    participation = participation_stats(rs)
    score = health_score(m)

    def top(severity: str, limit: int | None) -> list[dict[str, Any]]:
        items = [i for i in analysis.insights if i.severity == severity]
        if limit is not None:
            items = sorted(items, key=lambda i: (-i.confidence, i.id))[:limit]
        return [i.to_dict() for i in items]

    return {
        "participation": {
            "total_responses": participation["total_responses"],
            "participation_rate": "HIGH" if rs.valid_count >= 20 else "MEDIUM" if rs.valid_count >= 10 else "LOW",
            "avg_completion_time": participation["avg_completion_time"],
            "manager_responses": participation["manager_participation"],
            "sales_responses": participation["sales_participation"],
        },
        "health": {"score": score, "status": health_status(score), "trend": "Stable"},
        "keyMetrics": {
            "time": {k: m["time"][k].to_dict() for k in ("adminTime", "salesTime", "timeEfficiencyScore")},
            "system": {k: m["system"][k].to_dict() for k in ("toolCount", "overallComplexityScore")},
            "team": {k: m["collaboration"][k].to_dict() for k in ("informationSharingQuality", "overallCollaborationScore")},
            "process": {k: m["process"][k].to_dict() for k in ("leadLossFrequency", "primaryLossStage")},
        },
        "insights": {
            "critical": top("critical", None),
            "warnings": top("warning", 3),
            "positive": top("positive", 2),
        },
        "meta": {"lastUpdated": now.isoformat(), "role": role, "dataQuality": analysis.data_quality},
    }


def _area_filter(recommendations: list[Recommendation], tokens: tuple[str, ...]) -> list[Recommendation]:
    return [r for r in recommendations if any(t in r.area for t in tokens)]


def build_process_view(analysis: Analysis, role: str, *, base_leads: int = FUNNEL_BASE_LEADS, now: datetime | None = None) -> dict[str, Any]:
    rs = analysis.rs
    process = analysis.metrics["process"]
    shares, _, _, answered = stage_loss_shares(rs)
    funnel = build_funnel(base_leads, shares if answered else None)
    timing = stage_timing()
    primary = process["primaryLossStage"]
    bottlenecks = bottleneck_indicators(funnel, timing, primary.value if primary.has_data else None)
    visible = filter_recommendations_by_role(analysis.recommendations, role)
    return {
        "metrics": metrics_to_dict(process),
        "funnel": funnel,
        "stageTiming": timing,
        "bottlenecks": bottlenecks,
        "insights": [i.to_dict() for i in analysis.insight_groups["process"]],
        "recommendations": [r.to_dict() for r in _area_filter(visible, ("Process", "Conversion", "Stage"))],
        "meta": {
            "lastUpdated": (now or rs.now).isoformat(),
            "role": role,
            "dataQuality": analysis.data_quality,
            "funnelSource": funnel["source"],
        },
    }


def communication_gap_breakdown(rs: ResponseSet) -> list[dict[str, Any]]:
    parsed, _, _ = rs.collect(QuestionType.CHECKBOX, Bucket.COMMUNICATION_GAPS)
    counts: dict[str, int] = defaultdict(int)
    answered = 0
    for _, ans in parsed:
        if not isinstance(ans, CheckboxAnswer):
            continue
        answered += 1
        for option in ans.selected:
            if normalize_label(option) in ("ninguna", "ninguno", "none"):
                continue
            counts[option] += 1
    return [
        {"name": name, "count": count, "percentage": round(count / answered * 100, 1)}
        for name, count in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    ]


def build_team_view(analysis: Analysis, role: str, *, now: datetime | None = None) -> dict[str, Any]:
    rs = analysis.rs
    visible = filter_recommendations_by_role(analysis.recommendations, role)
    team_recs = _area_filter(visible, ("Team", "Communication", "Collaboration"))[:3]
    return {
        "metrics": metrics_to_dict(analysis.metrics["collaboration"]),
        "insights": [i.to_dict() for i in analysis.insight_groups["collaboration"]],
        "recommendations": [r.to_dict() for r in team_recs],
        "teamComparison": efficiency_by_team(rs),
        "communicationGaps": communication_gap_breakdown(rs),
        "meta": {"lastUpdated": (now or rs.now).isoformat(), "role": role, "dataQuality": analysis.data_quality},
    }


def build_recommendations_view(analysis: Analysis, role: str, *, today: date | None = None) -> dict[str, Any]:
    today = today or analysis.rs.now.date()
    filtered = filter_recommendations_by_role(analysis.recommendations, role)
    return {
        "recommendations": [
            {**r.to_dict(), "detailsUrl": f"/api/analytics/recommendations?id={r.id}"} for r in filtered
        ],
        "byCategory": group_recommendations_by_category(filtered),
        "quickWins": [r.to_dict() for r in quick_wins(filtered)],
        "implementation": calculate_implementation_metrics(filtered, today=today),
        "focusAreas": focus_areas_for_role(role),
        "meta": {
            "lastUpdated": analysis.rs.now.isoformat(),
            "role": role,
            "totalRecommendations": len(filtered),
            "dataQuality": analysis.data_quality,
        },
    }


def build_recommendation_detail(analysis: Analysis, rec_id: str, role: str, *, today: date | None = None) -> dict[str, Any] | None:
    match = next((r for r in analysis.recommendations if r.id == rec_id), None)
    if match is None:
        return None
    return recommendation_detail(
        match,
        analysis.recommendations,
        analysis.insights,
        role,
        today=today or analysis.rs.now.date(),
    )


FALLBACK_IMPROVEMENTS = {"dataEntry": 25, "leadResponse": 40, "productivity": 60}


def _clamp(value: float, low: int, high: int) -> int:
    return max(low, min(high, round(value)))


def completion_improvements(stats: dict[str, Any]) -> dict[str, int]:
    efficiency = stats.get("efficiency_score") or 6.5
    productivity = stats.get("productivity_score") or 7.0
    satisfaction = stats.get("satisfaction_score") or 6.0
    return {
        "dataEntry": _clamp((float(efficiency) - 5) / 5 * 30, 15, 35),
        "leadResponse": _clamp((float(productivity) - 5) / 5 * 50, 25, 55),
        "productivity": _clamp((float(satisfaction) - 4) / 6 * 80, 40, 80),
    }


def build_completion_stats(stats: dict[str, Any] | None) -> dict[str, Any]:
    if stats is None:
        return {
            "totalResponses": 0,
            "avgResponseTime": 0,
            "managerResponses": 0,
            "salesResponses": 0,
            "improvements": dict(FALLBACK_IMPROVEMENTS),
        }
    return {
        "totalResponses": int(stats.get("total_responses") or 0),
        "avgResponseTime": round(float(stats.get("avg_response_time") or 0)),
        "managerResponses": int(stats.get("manager_responses") or 0),
        "salesResponses": int(stats.get("sales_responses") or 0),
        "improvements": completion_improvements(stats),
    }
