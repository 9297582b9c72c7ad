from datetime import date

from conftest import NOW, answer, question, response

from survey_insights.services.dashboard import (
    Analysis,
    build_completion_stats,
    build_dashboard,
    build_process_view,
    build_recommendation_detail,
    build_recommendations_view,
    build_summary,
    build_team_view,
    completion_improvements,
    efficiency_by_team,
    health_status,
    performance_trends,
    process_issues,
    section_performance,
    system_health,
    tag_system_metrics,
)
from survey_insights.services.metrics import ResponseSet


def _rs(questions, responses, answers):
    return ResponseSet(questions, responses, answers, now=NOW)


def _scored_set():
    questions = [
        question(1, "likert", "time_efficiency", section="Tiempo"),
        question(2, "likert", "data_quality", section="Datos"),
        question(3, "likert", "usability", section="Sistemas"),
    ]
    responses = [response(1), response(2, role="sales", seconds=300)]
    answers = [
        answer(1, 1, 1, "2", 2),
        answer(2, 2, 1, "4", 4),
        answer(3, 1, 2, "4.5", 4.5),
        answer(4, 1, 3, "3", 3),
        answer(5, 2, 3, "9", 9),
    ]
    return _rs(questions, responses, answers)


def test_process_issues_sorted_by_severity_then_frequency():
    issues = process_issues(_scored_set())
    assert [i["question_id"] for i in issues] == [1, 3, 2]
    assert [i["issue_category"] for i in issues] == ["EFFICIENCY", "SYSTEM_USABILITY", "DATA_QUALITY"]
    assert issues[0]["severity_score"] == 3.0
    assert issues[0]["frequency"] == 2
    assert [i["question_id"] for i in process_issues(_scored_set(), limit=2)] == [1, 3]


def test_section_performance_lists_weakest_first():
    sections = section_performance(_scored_set())
    assert [s["section"] for s in sections] == ["Tiempo", "Datos", "Sistemas"]
    assert sections[0]["problem_indicators"] == 2
    assert sections[2]["response_count"] == 2


def test_system_health_defaults_to_neutral_without_data():
    health = system_health(tag_system_metrics(_rs([], [], [])))
    assert health["overall_health_score"] == 5.0
    assert health["efficiency_index"] == 5.0
    assert health["lead_management_score"] == 5.0
    assert health["critical_failure_rate"] == 0


def test_tag_metrics_match_exact_tags():
    questions = [question(1, "likert", "lead_conversion_rate"), question(2, "likert", "lead_conversion")]
    answers = [answer(1, 1, 1, "2", 2), answer(2, 1, 2, "8", 8)]
    metrics = tag_system_metrics(_rs(questions, [response(1)], answers))
    assert metrics["lead_tracking_effectiveness"] == 8.0
    assert metrics["critical_issues"] == 1
    assert metrics["high_performance_areas"] == 1
    assert metrics["overall_satisfaction"] == 5.0


def test_efficiency_by_team_groups_on_target_role():
    teams = efficiency_by_team(_scored_set())
    assert [t["team"] for t in teams] == ["manager", "sales"]
    sales = teams[1]
    assert sales["performance_score"] == 6.5
    assert sales["strengths"] == 1
    assert sales["avg_completion_time"] == 300.0


def test_performance_trends_keep_recent_months_only():
    questions = [question(1, "likert", "productivity")]
    responses = [response(1, days_ago=1), response(2, days_ago=40), response(3, days_ago=400)]
    answers = [answer(1, 1, 1, "8", 8), answer(2, 2, 1, "6", 6), answer(3, 3, 1, "1", 1)]
    trends = performance_trends(_rs(questions, responses, answers))
    assert [t["month"] for t in trends] == ["2026-05", "2026-06"]
    assert [t["avg_performance"] for t in trends] == [6.0, 8.0]


def test_completion_improvements_are_clamped():
    high = completion_improvements({"efficiency_score": 10, "productivity_score": 10, "satisfaction_score": 10})
    assert high == {"dataEntry": 30, "leadResponse": 50, "productivity": 80}
    low = completion_improvements({"efficiency_score": 1, "productivity_score": 1, "satisfaction_score": 1})
    assert low == {"dataEntry": 15, "leadResponse": 25, "productivity": 40}
    assert completion_improvements({}) == {"dataEntry": 15, "leadResponse": 25, "productivity": 40}


def test_completion_stats_fallback_when_unavailable():
    stats = build_completion_stats(None)
    assert stats["totalResponses"] == 0
    assert stats["improvements"] == {"dataEntry": 25, "leadResponse": 40, "productivity": 60}

    stats = build_completion_stats({"total_responses": 12, "avg_response_time": 431.6, "manager_responses": 5, "sales_responses": 7})
    assert stats["totalResponses"] == 12
    assert stats["avgResponseTime"] == 432
    assert stats["salesResponses"] == 7


def test_health_status_bands():
    assert health_status(7.5) == "Good"
    assert health_status(7.4) == "Fair"
    assert health_status(5.0) == "Fair"
    assert health_status(4.9) == "Needs Attention"


def _admin_heavy_analysis():
    questions = [question(1, "percentage", "time_allocation")]
    responses = [response(1), response(2, role="sales")]
    answers = [
        answer(1, 1, 1, '{"Data Entry": 80, "Venta": 20}'),
        answer(2, 2, 1, '{"Data Entry": 70, "Venta": 30}'),
    ]
    return Analysis(_rs(questions, responses, answers))


def test_dashboard_payload_shape():
    payload = build_dashboard(_admin_heavy_analysis())
    assert set(payload) == {
        "summary",
        "systemHealth",
        "sectionPerformance",
        "processIssues",
        "efficiencyMetrics",
        "performanceTrends",
        "achievements",
        "actionableInsights",
        "businessMetrics",
        "insights",
    }
    assert payload["summary"]["total_responses"] == 2
    assert payload["summary"]["lastUpdated"] == NOW.isoformat()
    assert payload["insights"]["topConcern"] == "No major issues identified"
    assert "high-admin-time" in [i["id"] for i in payload["insights"]["items"]]


def test_summary_reports_role_and_data_quality():
    summary = build_summary(_admin_heavy_analysis(), "coordinator")
    assert summary["meta"]["role"] == "coordinator"
    assert summary["meta"]["dataQuality"] == "low"
    assert summary["participation"]["manager_responses"] == 1
    assert summary["health"]["status"] in ("Good", "Fair", "Needs Attention")


def test_process_view_uses_default_funnel_without_stage_answers():
    view = build_process_view(_admin_heavy_analysis(), "admin", base_leads=1000)
    assert view["meta"]["funnelSource"] == "default"
    assert view["funnel"]["baseLeads"] == 1000


def test_process_view_uses_reported_stage_losses():
    questions = [question(1, "percentage", "conversion_stages")]
    answers = [answer(1, 1, 1, '{"Documentos": 100}')]
    view = build_process_view(Analysis(_rs(questions, [response(1)], answers)), "admin", base_leads=1000)
    assert view["meta"]["funnelSource"] == "survey"
    assert [s["count"] for s in view["funnel"]["stages"]] == [1000, 1000, 1000, 400, 400]


def test_team_view_counts_communication_gaps():
    questions = [question(1, "checkbox", "communication_gaps")]
    responses = [response(1), response(2, role="sales")]
    answers = [answer(1, 1, 1, '["Correo", "Chat"]'), answer(2, 2, 1, '["Correo", "Ninguno"]')]
    view = build_team_view(Analysis(_rs(questions, responses, answers)), "admin")
    assert view["communicationGaps"] == [
        {"name": "Correo", "count": 2, "percentage": 100.0},
        {"name": "Chat", "count": 1, "percentage": 50.0},
    ]


def test_recommendations_view_and_detail_lookup():
    analysis = _admin_heavy_analysis()
    view = build_recommendations_view(analysis, "admin", today=date(2026, 6, 15))
    ids = [r["id"] for r in view["recommendations"]]
    assert "reduce-admin-time" in ids
    assert view["recommendations"][0]["detailsUrl"].startswith("/api/analytics/recommendations?id=")
    assert view["meta"]["totalRecommendations"] == len(ids)

    detail = build_recommendation_detail(analysis, "reduce-admin-time", "assessor", today=date(2026, 6, 15))
    assert detail["implementationTimeline"]["startDate"] == "2026-06-15"
    assert build_recommendation_detail(analysis, "no-such-thing", "admin") is None


def test_process_view_labels_unmapped_stage_keys_as_default():
    questions = [question(1, "percentage", "conversion_stages")]
    answers = [answer(1, 1, 1, '{"Data Entry": 50, "Selling": 30, "Other": 20}')]
    view = build_process_view(Analysis(_rs(questions, [response(1)], answers)), "admin", base_leads=1000)
    assert view["meta"]["funnelSource"] == "default"
    assert [s["details"]["lossShare"] for s in view["funnel"]["stages"]] == [20.0, 25.0, 35.0, 15.0, 5.0]


def test_seeded_stage_options_map_onto_funnel_stages():
    questions = [question(1, "percentage", "conversion_stages")]
    answers = [
        answer(
            1,
            1,
            1,
            '{"Contacto Inicial": 10, "Solicitud Iniciada": 10, "Recolección de Documentos": 60, "Revisión": 10, "Decisión": 10}',
        )
    ]
    view = build_process_view(Analysis(_rs(questions, [response(1)], answers)), "admin", base_leads=1000)
    assert view["meta"]["funnelSource"] == "survey"
    assert [s["details"]["lossShare"] for s in view["funnel"]["stages"]] == [10.0, 10.0, 60.0, 10.0, 10.0]
