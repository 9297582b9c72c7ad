from survey_insights.services.funnel import (
    bottleneck_indicators,
    build_funnel,
    dropoff_severity,
    stage_timing,
)


def test_dropoff_severity_thresholds():
    assert dropoff_severity(31) == "high"
    assert dropoff_severity(30) == "medium"
    assert dropoff_severity(16) == "medium"
    assert dropoff_severity(15) == "low"
    assert dropoff_severity(6) == "low"
    assert dropoff_severity(5) == "none"


def test_default_funnel_shape():
    funnel = build_funnel(1000)
    assert [s["count"] for s in funnel["stages"]] == [1000, 880, 748, 591, 538]
    assert [s["dropoffPercentage"] for s in funnel["stages"]] == [0, 12, 15, 21, 9]
    assert [s["bottleneckSeverity"] for s in funnel["stages"]] == ["none", "low", "low", "medium", "low"]
    assert funnel["stages"][2]["id"] == "document-collection"
    assert funnel["totalConversion"] == 53.8
    assert funnel["conversionRates"][0] == {"from": "Initial Inquiry", "to": "Application Started", "rate": 88.0}


def test_reported_loss_shares_drive_the_funnel():
    funnel = build_funnel(1000, {"Document Collection": 100.0})
    assert [s["count"] for s in funnel["stages"]] == [1000, 1000, 1000, 400, 400]
    assert funnel["stages"][3]["bottleneckSeverity"] == "high"
    assert funnel["stages"][0]["details"]["lossShare"] == 0.0

    # labels outside the canonical stages are ignored
    assert build_funnel(1000, {"Otro": 80.0}) == build_funnel(1000)


def test_zero_base_leads_does_not_divide_by_zero():
    funnel = build_funnel(0)
    assert funnel["totalConversion"] == 0.0
    assert all(s["percentage"] == 0.0 for s in funnel["stages"])


def test_stage_timing_flags_slow_stages():
    timing = stage_timing()
    status = {r["stage"]: r["status"] for r in timing["averageDaysInStage"]}
    assert status == {
        "Initial Inquiry": "normal",
        "Application Started": "high",
        "Document Collection": "high",
        "Review Process": "medium",
        "Decision Stage": "normal",
    }
    assert timing["totalDays"] == 19.7
    assert timing["targetTotalDays"] == 13.0


def test_primary_loss_stage_dominates_bottleneck_scores():
    funnel = build_funnel(1000)
    indicators = bottleneck_indicators(funnel, stage_timing(), "Document Collection")
    by_stage = {i["stage"]: i for i in indicators["stages"]}
    assert by_stage["Document Collection"]["score"] == 10
    assert by_stage["Document Collection"]["level"] == "HIGH"
    assert by_stage["Document Collection"]["reasons"][0] == "Primary lead loss stage"
    assert by_stage["Application Started"]["level"] == "MEDIUM"
    assert by_stage["Initial Inquiry"]["score"] == 0
    assert indicators["overallSeverity"] == "SIGNIFICANT"


def test_low_conversion_adds_to_bottleneck_score():
    funnel = build_funnel(1000, {"Document Collection": 100.0})
    indicators = bottleneck_indicators(funnel, stage_timing(), None)
    review = next(i for i in indicators["stages"] if i["stage"] == "Review Process")
    # 40% incoming conversion -> 3, time above target -> 3
    assert review["score"] == 6
    assert review["level"] == "MEDIUM"


def test_funnel_reports_whether_survey_shares_were_used():
    assert build_funnel(1000)["source"] == "default"
    assert build_funnel(1000, {"Data Entry": 50.0, "Selling": 30.0, "Other": 20.0})["source"] == "default"
    assert build_funnel(1000, {"Review Process": 100.0})["source"] == "survey"
