from expertscope.services.answers import extract_anchors
from expertscope.services.prompt_builder import build_analysis_prompt


ANSWERS = {
    "basic_name": "Kim",
    "expertise_main_field": "Real Estate",
    "expertise_years": "20년",
    "goals": ["매출 증대", "고객 확보"],
    "team_size": 3,
}


def test_prompt_is_byte_identical_for_same_answers():
    assert build_analysis_prompt(ANSWERS) == build_analysis_prompt(ANSWERS)


def test_prompt_ignores_answer_insertion_order():
    reordered = dict(reversed(list(ANSWERS.items())))
    assert build_analysis_prompt(reordered) == build_analysis_prompt(ANSWERS)


def test_prompt_contains_anchors_and_full_answers():
    prompt = build_analysis_prompt(ANSWERS)
    assert "Kim" in prompt
    assert "Real Estate" in prompt
    assert "20년" in prompt
    assert "매출 증대" in prompt
    assert '"team_size": 3' in prompt


def test_prompt_lists_all_output_fields_and_rules():
    prompt = build_analysis_prompt({})
    for field in (
        "expertiseScore", "personalizedInsight", "businessHint", "marketOpportunity",
        "successProbability", "keyStrengths", "nextStepTeaser", "exclusiveValue", "urgencyFactor",
    ):
        assert f'"{field}"' in prompt
    assert "```" in prompt
    assert "{ 로 시작해서 } 로 끝나는" in prompt


def test_empty_answers_use_placeholders():
    anchors = extract_anchors({})
    assert anchors.name == "고객"
    assert anchors.expertise == "전문 분야"
    assert anchors.years == "경력"


def test_anchor_fallback_keys_and_value_shapes():
    anchors = extract_anchors({"name": "Lee", "expertise_field": ["Finance", "Insurance"], "experience_years": 15})
    assert anchors.name == "Lee"
    assert anchors.expertise == "Finance, Insurance"
    assert anchors.years == "15"


def test_blank_anchor_falls_through_to_next_key():
    anchors = extract_anchors({"basic_name": "  ", "name": "Park"})
    assert anchors.name == "Park"
