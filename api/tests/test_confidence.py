from survey_insights.services.confidence import (
    build_confidence,
    confidence_factors,
    confidence_level,
    confidence_score,
)


def test_confidence_level_boundaries():
    assert confidence_level(0) == "low"
    assert confidence_level(9) == "low"
    assert confidence_level(10) == "medium"
    assert confidence_level(19) == "medium"
    assert confidence_level(20) == "high"
    assert confidence_level(250) == "high"


def test_confidence_score_grows_with_sample_and_shrinks_with_question_count():
    assert confidence_score(5, 1) < confidence_score(20, 1) < confidence_score(40, 1)
    assert confidence_score(20, 5) < confidence_score(20, 1)
    # question adjustment floors at 0.7
    assert confidence_score(20, 50) == confidence_score(20, 7)
    assert 0.0 < confidence_score(0, 1) < 0.1


def test_no_data_confidence_is_low_with_zero_score():
    block = build_confidence(25, 2, has_data=False)
    assert block["level"] == "low"
    assert block["score"] == 0.0
    assert block["factors"][0] == "Moderate sample size"


def test_confidence_factors_mention_question_spread():
    assert "Based on a single question" in confidence_factors(3, 1)
    assert "Based on multiple related questions" in confidence_factors(3, 4)
    assert confidence_factors(45, 1)[0] == "Strong sample size"
