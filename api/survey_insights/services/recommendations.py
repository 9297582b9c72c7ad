from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable

from .insights import Insight

# (magnitude, effort level) -> base priority. High impact / quick win always lands on 9-10.
PRIORITY_TABLE: dict[tuple[str, str], int] = {
    ("high", "quick-win"): 9,
    ("high", "medium"): 8,
    ("high", "significant"): 7,
    ("medium", "quick-win"): 7,
    ("medium", "medium"): 6,
    ("medium", "significant"): 5,
    ("low", "quick-win"): 5,
    ("low", "medium"): 4,
    ("low", "significant"): 3,
}
CRITICAL_SOURCE_BONUS = 1
MAX_PRIORITY = 10


@dataclass
class Recommendation:
    id: str
    title: str
    description: str
    steps: list[str]
    impact: dict[str, str]
    effort: dict[str, str]
    source_insights: list[str] = field(default_factory=list)
    priority: int = 0

    @property
    def area(self) -> str:
        return self.impact.get("area", "")

    @property
    def magnitude(self) -> str:
        return self.impact.get("magnitude", "")

    @property
    def effort_level(self) -> str:
        return self.effort.get("level", "")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "steps": list(self.steps),
            "impact": dict(self.impact),
            "effort": dict(self.effort),
            "priority": self.priority,
            "sourceInsights": list(self.source_insights),
        }


@dataclass(frozen=True)
class CatalogueEntry:
    triggers: tuple[str, ...]
    build: Callable[[dict[str, Insight]], Recommendation]


def _static(
    rec_id: str,
    title: str,
    description: str,
    steps: list[str],
    impact: tuple[str, str, str],
    effort: tuple[str, str, str],
    triggers: tuple[str, ...],
) -> CatalogueEntry:
    def build(_: dict[str, Insight]) -> Recommendation:
        return Recommendation(
            id=rec_id,
            title=title,
            description=description,
            steps=list(steps),
            impact={"area": impact[0], "magnitude": impact[1], "description": impact[2]},
            effort={"level": effort[0], "description": effort[1], "timeEstimate": effort[2]},
            source_insights=list(triggers),
        )

    return CatalogueEntry(triggers=triggers, build=build)


def _loss_stage(found: dict[str, Insight]) -> Recommendation:
    insight = found.get("primary-loss-stage")
    stage = "identified stage"
    if insight is not None and '"' in insight.description:
        stage = insight.description.split('"')[1] or stage
    return Recommendation(
        id="optimize-loss-stage",
        title=f"Optimize {stage} Stage",
        description=f"Improve processes specifically in the {stage} stage to reduce lead losses",
        steps=[
            f"Document detailed {stage} stage workflow",
            "Identify specific friction points in the process",
            "Implement targeted improvements for key friction points",
            "Create tracking metrics for stage-specific performance",
        ],
        impact={
            "area": "Stage Conversion",
            "magnitude": "high",
            "description": f"Could reduce losses in {stage} stage by 30-40%",
        },
        effort={"level": "medium", "description": "Requires focused process improvements", "timeEstimate": "3-4 weeks"},
        source_insights=["primary-loss-stage"],
    )


CATALOGUE: tuple[CatalogueEntry, ...] = (
    _static(
        "reduce-admin-time",
        "Reduce Administrative Burden",
        "Implement automation for repetitive administrative tasks to reduce time burden",
        [
            "Document most time-consuming administrative processes",
            "Identify automation opportunities in each process",
            "Implement templates and standardized workflows",
            "Configure automated reminders and notifications",
        ],
        ("Time Allocation", "high", "Could reduce administrative time by 15-20%"),
        ("medium", "2-4 weeks with IT resources", "2-4 weeks"),
        ("high-admin-time",),
    ),
    _static(
        "increase-strategic-time",
        "Increase Strategic Planning Time",
        "Allocate dedicated time for strategic planning and process improvement",
        [
            "Schedule regular strategic planning sessions",
            "Delegate system problem resolution to appropriate team members",
            "Create decision-making framework for prioritizing system issues",
            "Implement strategic planning templates and processes",
        ],
        ("Management Effectiveness", "high", "Could increase strategic planning time by 10-15%"),
        ("quick-win", "Primarily requires scheduling changes", "1-2 weeks"),
        ("low-strategic-time",),
    ),
    _static(
        "optimize-time-allocation",
        "Optimize Time Allocation Balance",
        "Rebalance time allocation to focus more on core sales activities",
        [
            "Audit daily activities and identify administrative time sinks",
            "Create standard operating procedures for common tasks",
            "Implement time tracking for key activities",
            "Train staff on time management techniques",
        ],
        ("Productivity", "high", "Could improve sales/admin time ratio by 30-40%"),
        ("medium", "Requires process changes and training", "3-4 weeks"),
        ("poor-time-allocation",),
    ),
    _static(
        "consolidate-tools",
        "Consolidate System Tools",
        "Reduce the number of separate tools by consolidating functionality",
        [
            "Create comprehensive tool inventory",
            "Map functionality overlap between tools",
            "Identify primary systems for key functions",
            "Create migration plan for consolidated system",
        ],
        ("System Efficiency", "high", "Could reduce tool count by 20-30%"),
        ("significant", "Requires system integration work", "2-3 months"),
        ("high-tool-count",),
    ),
    _static(
        "implement-sso",
        "Implement Single Sign-On",
        "Reduce login friction by implementing single sign-on across systems",
        [
            "Inventory all systems requiring separate authentication",
            "Select SSO provider compatible with existing systems",
            "Implement authentication service integration",
            "Roll out SSO solution with user training",
        ],
        ("User Experience", "medium", "Could save 5-10 minutes per user per day"),
        ("medium", "Requires IT resources for implementation", "4-6 weeks"),
        ("high-login-fragmentation",),
    ),
    _static(
        "address-workarounds",
        "Address Critical Workarounds",
        "Implement system improvements to eliminate the need for common workarounds",
        [
            "Document all current workarounds and their root causes",
            "Prioritize workarounds based on frequency and impact",
            "Develop system enhancements to address top workarounds",
            "Create transition plan to new processes",
        ],
        ("Process Efficiency", "high", "Could eliminate 70-80% of workarounds"),
        ("significant", "Requires system development and process changes", "2-3 months"),
        ("high-workaround-prevalence", "critical-workarounds-identified"),
    ),
    _static(
        "improve-information-sharing",
        "Improve Information Sharing",
        "Implement structured information sharing processes and tools",
        [
            "Create centralized information repository",
            "Define standard information sharing protocols",
            "Implement regular team knowledge sharing sessions",
            "Create role-specific dashboards for key information",
        ],
        ("Team Collaboration", "high", "Could improve information sharing quality by 30-40%"),
        ("medium", "Requires process changes and tool configuration", "4-6 weeks"),
        ("poor-information-sharing",),
    ),
    _static(
        "standardize-handoffs",
        "Standardize Process Handoffs",
        "Create structured handoff processes between team members and stages",
        [
            "Document current handoff processes and pain points",
            "Create standardized handoff templates for each transition",
            "Implement handoff checklists in workflow",
            "Train team on new handoff protocols",
        ],
        ("Process Continuity", "medium", "Could improve handoff effectiveness by 25-35%"),
        ("quick-win", "Primarily requires process standardization", "2-3 weeks"),
        ("poor-handoff-effectiveness",),
    ),
    _static(
        "increase-pipeline-reviews",
        "Increase Pipeline Review Frequency",
        "Implement more frequent and structured pipeline reviews",
        [
            "Schedule regular pipeline review sessions",
            "Create standardized pipeline review template",
            "Define clear action items from each review",
            "Implement follow-up tracking system",
        ],
        ("Management Oversight", "medium", "Could improve pipeline visibility and management"),
        ("quick-win", "Primarily requires scheduling changes", "1-2 weeks"),
        ("infrequent-pipeline-reviews",),
    ),
    _static(
        "reduce-lead-loss",
        "Reduce Lead Loss Rate",
        "Implement processes to reduce lead losses during the application process",
        [
            "Analyze detailed lead loss reasons",
            "Create stage-specific retention strategies",
            "Implement lead nurturing automation",
            "Define service level agreements for follow-up",
        ],
        ("Conversion Rate", "high", "Could reduce lead loss rate by 20-30%"),
        ("medium", "Requires process changes and automation", "4-6 weeks"),
        ("high-lead-loss",),
    ),
    CatalogueEntry(triggers=("primary-loss-stage",), build=_loss_stage),
    _static(
        "improve-lead-tracking",
        "Improve Lead Tracking Visibility",
        "Enhance lead tracking systems to improve pipeline visibility",
        [
            "Audit current lead tracking process and gaps",
            "Implement standardized lead status definitions",
            "Create comprehensive lead tracking dashboard",
            "Train team on consistent tracking procedures",
        ],
        ("Pipeline Visibility", "medium", "Could improve lead tracking confidence by 30-40%"),
        ("medium", "Requires system and process changes", "4-5 weeks"),
        ("low-lead-tracking-confidence",),
    ),
    _static(
        "improve-data-access",
        "Improve Data Access Speed",
        "Optimize data access systems to reduce time spent searching for information",
        [
            "Identify most frequently accessed data types",
            "Create role-specific quick access interfaces",
            "Implement search optimization and indexing",
            "Create favorite/recent items functionality",
        ],
        ("Operational Efficiency", "medium", "Could reduce data access time by 40-60%"),
        ("medium", "Requires interface and system optimization", "4-6 weeks"),
        ("slow-data-access",),
    ),
)


def calculate_priority(recommendation: Recommendation, source_insights: list[Insight]) -> int:
    base = PRIORITY_TABLE.get((recommendation.magnitude, recommendation.effort_level), 1)
    if any(i.severity == "critical" for i in source_insights):
        base += CRITICAL_SOURCE_BONUS
    return max(1, min(MAX_PRIORITY, base))


def sort_recommendations(recommendations: list[Recommendation]) -> list[Recommendation]:
    return sorted(recommendations, key=lambda r: (-r.priority, r.id))


def prioritize_recommendations(insights: list[Insight]) -> list[Recommendation]:
    """Catalogue entries whose trigger insights fired, scored and sorted by priority."""
    found = {i.id: i for i in insights}
    out: list[Recommendation] = []
    for entry in CATALOGUE:
        triggered = [found[t] for t in entry.triggers if t in found]
        if not triggered:
            continue
        rec = entry.build(found)
        # Only insights that actually fired are listed as sources.
        rec = replace(rec, source_insights=[i.id for i in triggered])
        rec.priority = calculate_priority(rec, triggered)
        out.append(rec)
    return sort_recommendations(out)
