"""Role filtering, grouping and detail views for recommendations."""

from __future__ import annotations

import math
import re
from datetime import date, timedelta
from typing import Any

from .insights import Insight
from .recommendations import Recommendation

ROLES = ("admin", "coordinator", "assessor")
ROLE_ALIASES = {"sales": "assessor", "manager": "coordinator"}

# Which dashboard roles a token role may request.
VISIBLE_ROLES = {
    "admin": {"admin", "coordinator", "assessor"},
    "coordinator": {"coordinator", "assessor"},
    "assessor": {"assessor"},
}

ROLE_PERMISSIONS: dict[str, dict[str, bool]] = {
    "admin": {
        "canViewAdminMetrics": True,
        "canViewCoordinatorMetrics": True,
        "canViewAssessorMetrics": True,
        "canExportData": True,
        "canAccessRecommendations": True,
    },
    "coordinator": {
        "canViewAdminMetrics": False,
        "canViewCoordinatorMetrics": True,
        "canViewAssessorMetrics": True,
        "canExportData": True,
        "canAccessRecommendations": True,
    },
    "assessor": {
        "canViewAdminMetrics": False,
        "canViewCoordinatorMetrics": False,
        "canViewAssessorMetrics": True,
        "canExportData": False,
        "canAccessRecommendations": True,
    },
}

COORDINATOR_AREAS = ("Team", "Communication", "Process", "Conversion", "Pipeline")
ASSESSOR_EXCLUDED_AREAS = ("Management", "Strategic")
ASSESSOR_MIN_PRIORITY = 7

CATEGORY_GROUPS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Time Allocation", ("Time", "Productivity")),
    ("System Efficiency", ("System", "User Experience")),
    ("Team Collaboration", ("Team", "Communication", "Collaboration")),
    ("Process Improvement", ("Process", "Conversion", "Stage")),
)
DEFAULT_GROUP = "Process Improvement"

EFFORT_WEEKS = {"quick-win": 1.5, "medium": 4, "significant": 8}
PARALLEL_STREAMS = 3
FALLBACK_TOTAL_WEEKS = {"quick-win": 2, "medium": 5, "significant": 9}
IMPACT_NUMERIC = {"high": 9.0, "medium": 6.5, "low": 3.5}
STAFF_HOURS = {"quick-win": 8, "medium": 28, "significant": 80}


def normalize_role(role: str | None) -> str | None:
    if role is None:
        return None
    value = str(role).strip().lower()
    value = ROLE_ALIASES.get(value, value)
    return value if value in ROLES else None


def filter_recommendations_by_role(recommendations: list[Recommendation], role: str) -> list[Recommendation]:
    role = normalize_role(role) or role
    if role == "coordinator":
        return [
            r
            for r in recommendations
            if any(token in r.area for token in COORDINATOR_AREAS) or r.magnitude == "high"
        ]
    if role == "assessor":
        return [
            r
            for r in recommendations
            if not any(token in r.area for token in ASSESSOR_EXCLUDED_AREAS)
            and (r.effort_level == "quick-win" or r.priority >= ASSESSOR_MIN_PRIORITY)
        ]
    return list(recommendations)


def category_for_area(area: str) -> str:
    for group, tokens in CATEGORY_GROUPS:
        if any(token in area for token in tokens):
            return group
    return DEFAULT_GROUP


def group_recommendations_by_category(recommendations: list[Recommendation]) -> dict[str, list[dict[str, Any]]]:
    groups: dict[str, list[dict[str, Any]]] = {name: [] for name, _ in CATEGORY_GROUPS}
    for rec in recommendations:
        groups[category_for_area(rec.area)].append(rec.to_dict())
    return groups


def quick_wins(recommendations: list[Recommendation], limit: int = 3) -> list[Recommendation]:
    wins = [r for r in recommendations if r.magnitude == "high" and r.effort_level == "quick-win"]
    return sorted(wins, key=lambda r: (-r.priority, r.id))[:limit]


def calculate_implementation_metrics(recommendations: list[Recommendation], *, today: date | None = None) -> dict[str, Any]:
    today = today or date.today()
    efforts = [r.effort_level for r in recommendations]
    magnitudes = [r.magnitude for r in recommendations]
    total_effort = sum(EFFORT_WEEKS.get(level, 0) for level in efforts)
    weeks = math.ceil(total_effort / PARALLEL_STREAMS)
    return {
        "effortDistribution": {
            "quickWins": efforts.count("quick-win"),
            "mediumEffort": efforts.count("medium"),
            "significantEffort": efforts.count("significant"),
        },
        "impactDistribution": {
            "highImpact": magnitudes.count("high"),
            "mediumImpact": magnitudes.count("medium"),
            "lowImpact": magnitudes.count("low"),
        },
        "implementationWaves": {
            "wave1": len([r for r in recommendations if r.priority >= 8]),
            "wave2": len([r for r in recommendations if 5 <= r.priority < 8]),
            "wave3": len([r for r in recommendations if r.priority < 5]),
            "totalRecommendations": len(recommendations),
        },
        "timeline": {
            "totalEffortWeeks": total_effort,
            "estimatedTimelineWeeks": weeks,
            "earliestCompletionDate": (today + timedelta(weeks=weeks)).isoformat(),
        },
    }


FOCUS_AREAS: dict[str, list[dict[str, Any]]] = {
    "admin": [
        {
            "area": "Strategic Planning",
            "description": "Focus on long-term improvements with the highest organizational impact",
            "keyMetrics": ["timeEfficiencyScore", "overallBottleneckScore", "overallCollaborationScore"],
        },
        {
            "area": "Resource Allocation",
            "description": "Optimize resource allocation across the admissions process",
            "keyMetrics": ["adminTime", "systemProblemTime", "leadLossFrequency"],
        },
        {
            "area": "System Architecture",
            "description": "Address fundamental system limitations and integration opportunities",
            "keyMetrics": ["toolCount", "loginFragmentation", "workaroundPrevalence"],
        },
    ],
    "coordinator": [
        {
            "area": "Team Effectiveness",
            "description": "Improve communication and handoff processes between team members",
            "keyMetrics": ["handoffEffectiveness", "informationSharingQuality", "communicationGap"],
        },
        {
            "area": "Process Optimization",
            "description": "Identify and address bottlenecks in the application process",
            "keyMetrics": ["leadLossFrequency", "primaryLossStage", "dataAccessTime"],
        },
        {
            "area": "Workload Balance",
            "description": "Ensure efficient allocation of time and tasks across the team",
            "keyMetrics": ["adminTime", "salesTime", "timeEfficiencyScore"],
        },
    ],
    "assessor": [
        {
            "area": "Daily Efficiency",
            "description": "Improve your daily workflow and reduce administrative burden",
            "keyMetrics": ["adminTime", "salesTime", "dataAccessTime"],
        },
        {
            "area": "Tool Usability",
            "description": "Address workarounds and system limitations that affect your work",
            "keyMetrics": ["workaroundPrevalence", "toolCount", "loginFragmentation"],
        },
        {
            "area": "Communication",
            "description": "Enhance information sharing and collaboration with team members",
            "keyMetrics": ["informationSharingQuality", "handoffEffectiveness", "communicationGap"],
        },
    ],
}


def focus_areas_for_role(role: str) -> list[dict[str, Any]]:
    return [dict(item) for item in FOCUS_AREAS.get(normalize_role(role) or "", FOCUS_AREAS["admin"])]


# Detail view

STEP_SUFFIXES: tuple[tuple[str, str], ...] = (
    ("Document", "Gather input from all stakeholders and create a comprehensive inventory"),
    ("Identify", "Use data-driven analysis to find the highest-impact opportunities"),
    ("Implement", "Create a phased implementation plan with clear success metrics"),
    ("Configure", "Ensure all settings are optimized for the specific workflow"),
    ("Create", "Design with user experience as the primary consideration"),
)
DEFAULT_STEP_SUFFIX = "Ensure alignment with organizational goals and measure outcomes"

AREA_ENHANCEMENTS = {
    "Time Allocation": "This would free up staff time for higher-value activities and improve overall productivity.",
    "Management Effectiveness": "This would improve strategic direction and long-term planning capabilities.",
    "Productivity": "This would directly improve key performance metrics and staff satisfaction.",
    "System Efficiency": "This would reduce system complexity and maintenance costs.",
    "User Experience": "This would improve staff satisfaction and reduce training requirements.",
    "Process Efficiency": "This would streamline operations and reduce errors.",
    "Team Collaboration": "This would improve information flow and reduce communication gaps.",
    "Process Continuity": "This would reduce errors during handoffs and improve accountability.",
    "Management Oversight": "This would improve decision-making and resource allocation.",
    "Conversion Rate": "This would directly impact revenue and growth metrics.",
    "Stage Conversion": "This would address a critical bottleneck in the application process.",
    "Pipeline Visibility": "This would improve forecasting accuracy and resource planning.",
    "Operational Efficiency": "This would improve daily productivity across all team members.",
}
ROI_TEXT = {
    "high": "Expected ROI is significant, with benefits likely to exceed implementation costs by 3-5x.",
    "medium": "Expected ROI is positive, with benefits likely to exceed implementation costs by 2-3x.",
    "low": "Expected ROI is moderate, with benefits likely to match implementation costs.",
}

KEY_METRICS_BY_AREA: tuple[tuple[str, list[str]], ...] = (
    ("Time Allocation", ["adminTime", "salesTime", "timeEfficiencyScore"]),
    ("Management Effectiveness", ["strategicTime", "systemProblemTime", "timeEfficiencyScore"]),
    ("Productivity", ["adminTime", "salesTime", "timeEfficiencyScore"]),
    ("System Efficiency", ["toolCount", "loginFragmentation", "workaroundPrevalence"]),
    ("User Experience", ["workaroundPrevalence", "dataAccessTime", "leadTrackingConfidence"]),
    ("Process Efficiency", ["leadLossFrequency", "primaryLossStage", "dataAccessTime"]),
    ("Team Collaboration", ["informationSharingQuality", "handoffEffectiveness", "communicationGap"]),
    ("Process Continuity", ["handoffEffectiveness", "communicationGap", "leadTrackingConfidence"]),
    ("Management Oversight", ["pipelineReviewFrequency", "informationSharingQuality"]),
    ("Conversion Rate", ["leadLossFrequency", "primaryLossStage", "overallBottleneckScore"]),
    ("Stage Conversion", ["leadLossFrequency", "primaryLossStage"]),
    ("Pipeline Visibility", ["leadTrackingConfidence", "pipelineReviewFrequency"]),
    ("Operational Efficiency", ["adminTime", "dataAccessTime", "toolCount"]),
)
DEFAULT_KEY_METRICS = ["timeEfficiencyScore", "overallBottleneckScore", "overallCollaborationScore"]

TIME_TO_REALIZE = {"quick-win": "2-4 weeks", "medium": "1-3 months"}

ROLE_SPECIFIC_CONTENT = {
    "admin": {
        "focusAreas": ["Strategic impact", "Resource allocation", "Long-term benefits"],
        "keyConsiderations": ["Budget implications", "Organizational alignment", "Change management"],
        "successMetrics": ["Process efficiency improvement", "Staff productivity increase", "Cost savings"],
    },
    "coordinator": {
        "focusAreas": ["Team coordination", "Process standardization", "Information flow"],
        "keyConsiderations": ["Team adoption", "Training requirements", "Implementation schedule"],
        "successMetrics": ["Handoff quality improvement", "Bottleneck reduction", "Lead conversion increase"],
    },
    "assessor": {
        "focusAreas": ["Daily workflow impact", "Usability improvement", "Time savings"],
        "keyConsiderations": ["Learning curve", "Process changes", "Tool adjustments"],
        "successMetrics": ["Administrative time reduction", "Faster data access", "Fewer workarounds"],
    },
}


def detailed_steps(recommendation: Recommendation) -> list[str]:
    out = []
    for step in recommendation.steps:
        suffix = next((text for keyword, text in STEP_SUFFIXES if keyword in step), DEFAULT_STEP_SUFFIX)
        out.append(f"{step} - {suffix}")
    return out


def estimate_impact(recommendation: Recommendation) -> dict[str, Any]:
    area = recommendation.area
    magnitude = recommendation.magnitude
    enhancement = AREA_ENHANCEMENTS.get(area, "This would improve overall system performance.")
    roi = ROI_TEXT.get(magnitude, ROI_TEXT["low"])
    return {
        "area": area,
        "magnitude": magnitude,
        "description": f"{recommendation.impact.get('description', '')}. {enhancement} {roi}",
        "numericValue": IMPACT_NUMERIC.get(magnitude, IMPACT_NUMERIC["low"]),
        "keyMetricsAffected": key_metrics_affected(area),
        "timeToRealize": TIME_TO_REALIZE.get(recommendation.effort_level, "3-6 months"),
    }


def key_metrics_affected(area: str) -> list[str]:
    for name, metrics in KEY_METRICS_BY_AREA:
        if name in area:
            return list(metrics)
    return list(DEFAULT_KEY_METRICS)


def _estimate_weeks(time_estimate: str) -> int | None:
    """Upper bound of "2-4 weeks" / "2-3 months" style estimates, in weeks."""
    match = re.search(r"(\d+)(?:\s*-\s*(\d+))?\s*(week|month)", time_estimate or "", re.IGNORECASE)
    if not match:
        return None
    upper = int(match.group(2) or match.group(1))
    return upper * 4 if match.group(3).lower() == "month" else upper


def implementation_timeline(recommendation: Recommendation, steps: list[str], *, today: date) -> dict[str, Any]:
    total = _estimate_weeks(recommendation.effort.get("timeEstimate", "")) or FALLBACK_TOTAL_WEEKS.get(
        recommendation.effort_level, FALLBACK_TOTAL_WEEKS["significant"]
    )
    planning = max(1, math.floor(total * 0.2))
    implementation = max(1, math.floor(total * 0.6))
    validation = max(1, total - planning - implementation)
    return {
        "totalWeeks": total,
        "startDate": today.isoformat(),
        "estimatedCompletionDate": (today + timedelta(weeks=total)).isoformat(),
        "phases": [
            {
                "name": "Planning",
                "duration": planning,
                "steps": ["Define scope and objectives", "Identify stakeholders", "Create detailed implementation plan"],
                "startWeek": 1,
            },
            {
                "name": "Implementation",
                "duration": implementation,
                "steps": steps[:3],
                "startWeek": planning + 1,
            },
            {
                "name": "Validation",
                "duration": validation,
                "steps": ["Verify implementation", "Measure impact", "Adjust as needed"],
                "startWeek": planning + implementation + 1,
            },
        ],
    }


def resource_requirements(recommendation: Recommendation) -> dict[str, Any]:
    level = recommendation.effort_level
    area = recommendation.area
    it_resources = level != "quick-win" or "System" in area or "User Experience" in area
    training = any("train" in step.lower() for step in recommendation.steps)
    external = level == "significant"

    roles: list[str] = []
    if "Management" in area or "Strategic" in area:
        roles.append("Manager")
    if "Team" in area or "Process" in area or "Pipeline" in area:
        roles.append("Coordinator")
    if "User Experience" in area or "Operational" in area or "Time Allocation" in area:
        roles.append("Assessor")
    if it_resources:
        roles.append("IT Support")
    if not roles:
        roles.append("Coordinator")

    return {
        "staffTimeHours": STAFF_HOURS.get(level, STAFF_HOURS["significant"]),
        "primaryOwner": roles[0],
        "rolesInvolved": list(dict.fromkeys(roles)),
        "technicalResources": it_resources,
        "trainingRequired": training,
        "externalSupport": external,
        "budgetImpact": "Medium" if external else ("Low" if it_resources else "Minimal"),
    }


def related_recommendations(recommendation: Recommendation, everything: list[Recommendation], limit: int = 3) -> list[dict[str, Any]]:
    head = recommendation.area.split(" ")[0] if recommendation.area else ""
    related = []
    for other in everything:
        if other.id == recommendation.id:
            continue
        other_head = other.area.split(" ")[0] if other.area else ""
        same_area = other.area == recommendation.area or (head and head in other.area) or (other_head and other_head in recommendation.area)
        shared = bool(set(other.source_insights) & set(recommendation.source_insights))
        if same_area or shared:
            related.append(other)
    related.sort(key=lambda r: (-r.priority, r.id))
    return [
        {
            "id": r.id,
            "title": r.title,
            "impact": dict(r.impact),
            "priority": r.priority,
            "detailsUrl": f"/api/analytics/recommendations?id={r.id}",
        }
        for r in related[:limit]
    ]


def recommendation_detail(
    recommendation: Recommendation,
    everything: list[Recommendation],
    insights: list[Insight],
    role: str,
    *,
    today: date | None = None,
) -> dict[str, Any]:
    today = today or date.today()
    steps = detailed_steps(recommendation)
    source = [i.to_dict() for i in insights if i.id in recommendation.source_insights]
    role_key = normalize_role(role) or "admin"
    out = recommendation.to_dict()
    out.update(
        {
            "detailedSteps": steps,
            "impact": estimate_impact(recommendation),
            "sourceInsights": source,
            "implementationTimeline": implementation_timeline(recommendation, steps, today=today),
            "resourceRequirements": resource_requirements(recommendation),
            "roleSpecific": dict(ROLE_SPECIFIC_CONTENT[role_key]),
            "relatedRecommendations": related_recommendations(recommendation, everything),
        }
    )
    return out
