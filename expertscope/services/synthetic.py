from __future__ import annotations

import random
from typing import Callable, List, Optional

from expertscope.schemas import AnalysisResult, UserAnswers
from expertscope.services.answers import Anchors, extract_anchors


def _premium_template(a: Anchors) -> AnalysisResult:
	return AnalysisResult(
		expertise_score=87,
		personalized_insight=f"{a.name}님의 {a.expertise} 분야 경험은 AI 기술과 융합했을 때 강력한 차별화 요소가 됩니다.",
		business_hint=f"{a.expertise} × AI 융합 서비스, 개인 맞춤형 솔루션 플랫폼",
		market_opportunity=f"{a.expertise} AI 시장이 향후 18개월 내 급성장 예상, 선점 효과 극대화 구간",
		success_probability="84% (유사 배경 전문가 6개월 평균 성과 기준)",
		key_strengths=[
			"장기간 축적된 전문 지식",
			"타겟 고객층 이해도",
			"신뢰 기반 네트워크",
			"실무 경험 기반 통찰력",
		],
		next_step_teaser="구체적인 AI 기술 스택, 파트너사 연결, 6개월 개발 로드맵은 전문가 상담에서 맞춤 설계해드립니다.",
		exclusive_value="ExpertTech만의 AI 개발사 네트워크와 200+ 성공 사례 데이터로 3개월 내 MVP 출시 가능",
		urgency_factor="현재 경쟁사 진입 전 골든타임, 6개월 내 시장 선점 필수",
	)


def _platform_template(a: Anchors) -> AnalysisResult:
	return AnalysisResult(
		expertise_score=85,
		personalized_insight=f"{a.name}님의 {a.expertise} 분야 전문성은 디지털 비즈니스의 핵심 경쟁력이 될 수 있습니다.",
		business_hint=f"{a.expertise} × AI 기술 융합으로 차별화된 서비스 플랫폼 구축",
		market_opportunity=f"{a.expertise} 기반 AI 솔루션 시장이 급성장 중이며, 현재가 진입 적기입니다.",
		success_probability="85% (유사 전문가 평균 성공률 기준)",
		key_strengths=[
			"축적된 도메인 전문 지식",
			"신뢰할 수 있는 고객 네트워크",
			"실무 기반 문제 해결 능력",
			"시장 요구사항 파악 능력",
		],
		next_step_teaser="구체적인 기술 구현 방안과 비즈니스 모델은 전문가 상담에서 맞춤 제안해드립니다.",
		exclusive_value="ExpertTech의 검증된 개발 파트너와 성공 사례로 빠른 시장 진입이 가능합니다.",
		urgency_factor="경쟁 업체 진입 전 선점 효과를 위해 6개월 내 출시가 중요합니다.",
	)


TEMPLATES: List[Callable[[Anchors], AnalysisResult]] = [_premium_template, _platform_template]


class SyntheticFallbackGenerator:
	"""Builds a complete analysis locally when no model output is usable.

	Template 0 is used unless ``randomize`` is set, in which case a seeded
	``random.Random`` picks one per call. ``generate(..., variant=n)`` always
	wins over both.
	"""

	def __init__(self, randomize: bool = False, seed: Optional[int] = None) -> None:
		self._randomize = randomize
		self._rng = random.Random(seed)

	@property
	def variant_count(self) -> int:
		return len(TEMPLATES)

	def generate(self, answers: UserAnswers, variant: Optional[int] = None) -> AnalysisResult:
		if variant is None:
			variant = self._rng.randrange(len(TEMPLATES)) if self._randomize else 0
		template = TEMPLATES[variant % len(TEMPLATES)]
		return template(extract_anchors(answers or {}))
