from expertscope.schemas import AnalysisResult
from expertscope.services.synthetic import SyntheticFallbackGenerator


ANSWERS = {"basic_name": "Kim", "expertise_main_field": "Real Estate"}


def _all_text(result: AnalysisResult) -> str:
    return " ".join([
        result.personalized_insight,
        result.business_hint,
        result.market_opportunity,
        result.next_step_teaser,
        result.exclusive_value,
        result.urgency_factor,
    ])


def test_anchors_survive_total_failure():
    result = SyntheticFallbackGenerator().generate(ANSWERS)
    text = _all_text(result)
    assert "Kim" in text
    assert "Real Estate" in text


def test_every_template_is_complete_and_personalized():
    gen = SyntheticFallbackGenerator()
    for variant in range(gen.variant_count):
        result = gen.generate(ANSWERS, variant=variant)
        payload = result.to_payload()
        assert len(payload) == 9
        assert 0 <= result.expertise_score <= 100
        assert len(result.key_strengths) == 4
        assert all(v for v in payload.values())
        assert "Kim" in result.personalized_insight
        assert "Real Estate" in result.personalized_insight


def test_default_generator_is_deterministic():
    gen = SyntheticFallbackGenerator()
    assert gen.generate(ANSWERS) == gen.generate(ANSWERS)
    assert gen.generate(ANSWERS) == gen.generate(ANSWERS, variant=0)


def test_seeded_randomization_is_reproducible():
    first = [SyntheticFallbackGenerator(randomize=True, seed=7).generate(ANSWERS) for _ in range(3)]
    second = [SyntheticFallbackGenerator(randomize=True, seed=7).generate(ANSWERS) for _ in range(3)]
    assert first == second


def test_empty_answers_use_placeholders():
    result = SyntheticFallbackGenerator().generate({})
    assert "고객" in result.personalized_insight
    assert "전문 분야" in result.personalized_insight


def test_answers_are_not_mutated():
    answers = {"basic_name": "Kim"}
    SyntheticFallbackGenerator().generate(answers)
    assert answers == {"basic_name": "Kim"}
