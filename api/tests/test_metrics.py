from conftest import NOW, answer, likert_rows, question, response

from survey_insights.services.metrics import (
    LOGIN_FREQUENCY,
    ResponseSet,
    calculate_all_metrics,
    calculate_business_metrics,
    calculate_process_metrics,
    calculate_system_metrics,
    calculate_time_metrics,
    lookup_choice,
)


def _rs(questions, responses, answers):
    return ResponseSet(questions, responses, answers, now=NOW)


def test_empty_response_set_gives_zero_values_and_low_confidence():
    groups = calculate_all_metrics(_rs([], [], []))
    for name, metric in groups["time"].items():
        assert metric.value == 0, name
        assert metric.confidence["level"] == "low"
        assert metric.confidence["score"] == 0.0
        assert metric.data_status == "no_data"
    assert groups["process"]["primaryLossStage"].value == "Unknown"
    assert groups["system"]["criticalWorkarounds"].value == []
    assert groups["business"]["workflowEffectiveness"].to_dict()["dataStatus"] == "no_data"


def test_admin_time_ratio_uses_sales_share_and_skips_zero_denominators():
    questions = [question(1, "percentage", "time_allocation")]
    responses = [response(1), response(2)]
    answers = [
        answer(1, 1, 1, '{"Data Entry": 80, "Venta": 20}'),
        answer(2, 2, 1, '{"Data Entry": 0, "Venta": 0, "Otros": 100}'),
    ]
    time = calculate_time_metrics(_rs(questions, responses, answers))

    ratio = time["adminTimeRatio"]
    assert ratio.contributions == [2.0]
    assert ratio.value == 2.0
    assert ratio.sample_size == 1
    assert time["adminTime"].value == 40.0
    assert time["salesTime"].value == 10.0
    assert time["adminTime"].source_questions == [1]


def test_time_efficiency_without_system_problem_answers():
    questions = [question(1, "percentage", "admin_burden")]
    responses = [response(1)]
    answers = [answer(1, 1, 1, '{"Entrada de Datos": 60, "Ventas": 20, "Reuniones": 20}')]
    time = calculate_time_metrics(_rs(questions, responses, answers))
    assert time["timeEfficiencyScore"].value == 2.5
    assert time["strategicTime"].value == 0
    assert not time["strategicTime"].has_data


def test_strategic_time_is_complement_of_system_problem_time():
    questions = [question(1, "multiple_choice", "system_burden")]
    responses = [response(1), response(2)]
    answers = [answer(1, 1, 1, "26-40%"), answer(2, 2, 1, "60%+")]
    time = calculate_time_metrics(_rs(questions, responses, answers))
    assert time["systemProblemTime"].value == 51.5
    assert time["strategicTime"].value == 48.5


def test_nine_plus_tools_maps_to_simplicity_one():
    questions = [question(1, "multiple_choice", "tool_count")]
    system = calculate_system_metrics(_rs(questions, [response(1)], [answer(1, 1, 1, "9+")]))
    assert system["systemComplexity"].contributions == [1.0]
    assert system["toolCount"].value == 9.0
    assert system["overallComplexityScore"].value == 9.0


def test_unknown_tool_option_uses_neutral_simplicity_but_is_not_counted():
    questions = [question(1, "multiple_choice", "tool_count")]
    system = calculate_system_metrics(_rs(questions, [response(1)], [answer(1, 1, 1, "Muchas")]))
    assert system["systemComplexity"].value == 5.0
    assert system["toolCount"].value == 0
    assert system["toolCount"].data_status == "unparseable"


def test_unknown_tool_option_is_masked_in_complexity_status():
    questions = [question(1, "multiple_choice", "tool_count")]
    system = calculate_system_metrics(_rs(questions, [response(1)], [answer(1, 1, 1, "Muchas")]))
    complexity = system["systemComplexity"]
    assert complexity.unparseable == 0
    assert complexity.data_status == "ok"
    assert complexity.contributions == [5.0]


def test_choice_lookup_ignores_accents_case_and_parenthetical():
    assert lookup_choice(LOGIN_FREQUENCY, "Frecuentemente (semanal)") == 4.0
    assert lookup_choice({"instantaneo": 0.0}, "Instantáneo") == 0.0
    assert lookup_choice(LOGIN_FREQUENCY, "cada hora") is None


def test_manual_tracking_ignores_none_option_and_lists_workarounds():
    questions = [
        question(1, "checkbox", "manual_workarounds"),
        question(2, "text", "critical_workarounds"),
    ]
    responses = [response(1), response(2)]
    answers = [
        answer(1, 1, 1, '["Excel", "Papel", "Ninguno"]'),
        answer(2, 2, 1, '["Ninguno"]'),
        answer(3, 1, 2, "Exportamos a Excel cada noche"),
        answer(4, 2, 2, "Exportamos a Excel cada noche"),
    ]
    system = calculate_system_metrics(_rs(questions, responses, answers))
    assert system["manualTrackingMethods"].contributions == [2.0, 0.0]
    assert system["manualTrackingMethods"].value == 1.0
    assert system["criticalWorkarounds"].value == ["Exportamos a Excel cada noche"]


def test_unparseable_answers_are_flagged_not_zeroed():
    questions = [question(1, "percentage", "time_allocation")]
    rs = _rs(questions, [response(1)], [answer(1, 1, 1, "{broken")])
    admin = calculate_time_metrics(rs)["adminTime"]
    assert admin.value == 0
    assert admin.unparseable == 1
    assert admin.data_status == "unparseable"
    assert admin.to_dict()["unparseableCount"] == 1

    rs = _rs(
        questions,
        [response(1), response(2)],
        [answer(1, 1, 1, "{broken"), answer(2, 2, 1, '{"Data Entry": 30, "Venta": 70}')],
    )
    admin = calculate_time_metrics(rs)["adminTime"]
    assert admin.value == 30.0
    assert admin.data_status == "partial"


def test_incomplete_responses_are_excluded():
    questions, responses, answers = likert_rows(1, "effectiveness", [4, 6])
    responses.append(response(9, complete=False))
    answers.append(answer(999, 9, 1, "1", 1))
    rs = _rs(questions, responses, answers)
    metric = calculate_business_metrics(rs)["workflowEffectiveness"]
    assert rs.response_count == 2
    assert metric.value == 5.0
    assert metric.response_count == 2


def test_likert_trend_compares_recent_window_with_older_answers():
    questions = [question(1, "likert", "information_sharing")]
    responses = [response(1, days_ago=2), response(2, days_ago=3), response(3, days_ago=60), response(4, days_ago=90)]
    answers = [answer(i, i, 1, None, v) for i, v in zip(range(1, 5), [8, 9, 4, 5])]
    metric = calculate_business_metrics(_rs(questions, responses, answers))["collaborationQuality"]
    assert metric.trend == "improving"


def test_primary_loss_stage_from_stage_percentages():
    questions = [question(1, "percentage", "conversion_stages")]
    responses = [response(1), response(2)]
    answers = [
        answer(1, 1, 1, '{"Documentos": 50, "Revisión": 30, "Cierre": 20}'),
        answer(2, 2, 1, '{"Documentos": 40, "Revisión": 40, "Cierre": 20}'),
    ]
    process = calculate_process_metrics(_rs(questions, responses, answers))
    assert process["primaryLossStage"].value == "Document Collection"
    assert process["primaryLossStage"].sample_size == 2


def test_primary_loss_stage_ties_go_to_earlier_stage():
    questions = [question(1, "percentage", "loss_analysis")]
    answers = [answer(1, 1, 1, '{"Documentos": 40, "Contacto inicial": 40, "Decision": 20}')]
    process = calculate_process_metrics(_rs(questions, [response(1)], answers))
    assert process["primaryLossStage"].value == "Initial Inquiry"


def test_bottleneck_score_blends_available_components():
    questions = [
        question(1, "multiple_choice", "lead_loss_rate"),
        question(2, "likert", "lead_tracking_confidence"),
    ]
    answers = [answer(1, 1, 1, "40%+"), answer(2, 1, 2, "4", 4)]
    process = calculate_process_metrics(_rs(questions, [response(1)], answers))
    # loss 45 -> 10.0, tracking 4 -> 6.0
    assert process["overallBottleneckScore"].value == 8.0
    assert process["leadLossIncidence"].data_status == "no_data"


def test_form_default_keys_count_selling_as_sales_time():
    questions = [question(1, "percentage", "time_allocation")]
    answers = [answer(1, 1, 1, '{"Data Entry": 60, "Selling": 30, "Other": 10}')]
    time = calculate_time_metrics(_rs(questions, [response(1)], answers))
    assert time["salesTime"].value == 30.0
    assert time["adminTime"].value == 60.0
    assert time["adminTimeRatio"].value == 3.33
    assert time["timeEfficiencyScore"].value == 3.3
