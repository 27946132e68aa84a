from __future__ import annotations

import json

from expertscope.schemas import UserAnswers
from expertscope.services.answers import extract_anchors


SYSTEM_PROMPT = (
	"당신은 40-50대 전문가를 위한 IT 비즈니스 분석 전문가입니다. "
	"전략적이고 개인화된 분석 결과를 JSON 형식으로 제공합니다. "
	"높은 품질의 통찰력 있는 분석으로 사용자가 신뢰할 수 있는 비즈니스 방향을 제시해주세요."
)


OUTPUT_RULES = (
	"**반드시 지켜주세요**:\n"
	"- 순수한 JSON 객체만 반환\n"
	"- 코드블록(```) 금지\n"
	"- 설명이나 추가 텍스트 금지\n"
	"- { 로 시작해서 } 로 끝나는 JSON만 반환\n"
	"- \"I'm sorry\" 같은 사과 문구 절대 금지"
)


def _serialize_answers(answers: UserAnswers) -> str:
	return json.dumps(answers, ensure_ascii=False, indent=2, sort_keys=True, default=str)


def _output_shape(name: str, expertise: str, years: str) -> str:
	return (
		"{\n"
		"  \"expertiseScore\": 점수(0-100 정수),\n"
		f"  \"personalizedInsight\": \"{name}님의 {expertise} {years} 경험을 활용한 개인화된 통찰 (120자)\",\n"
		f"  \"businessHint\": \"{expertise} × AI 융합 서비스 아이디어 (90자)\",\n"
		f"  \"marketOpportunity\": \"{expertise} AI 시장 기회 및 성장 전망 (90자)\",\n"
		"  \"successProbability\": \"성공 확률% (유사 배경 전문가 기준)\",\n"
		"  \"keyStrengths\": [\"강점1\", \"강점2\", \"강점3\", \"강점4\"],\n"
		"  \"nextStepTeaser\": \"구체적 기술스택/파트너사/로드맵 정보 필요성 (110자)\",\n"
		"  \"exclusiveValue\": \"ExpertTech 독점 자산/네트워크 가치 (90자)\",\n"
		"  \"urgencyFactor\": \"지금 시작해야 하는 명확한 이유 (90자)\"\n"
		"}"
	)


def build_analysis_prompt(answers: UserAnswers) -> str:
	"""Render the analysis request for one interview submission.

	The three anchor answers are interpolated individually; the full answer map
	is embedded as JSON so the model sees everything the visitor entered.
	Deterministic for equal input.
	"""
	anchors = extract_anchors(answers)
	return (
		f"{SYSTEM_PROMPT}\n\n"
		"분석 대상:\n"
		f"- 이름: {anchors.name}\n"
		f"- 전문 분야: {anchors.expertise}\n"
		f"- 경험: {anchors.years}\n"
		f"- 기타 정보:\n{_serialize_answers(answers)}\n\n"
		"다음 JSON 형식으로만 응답해주세요:\n\n"
		f"{_output_shape(anchors.name, anchors.expertise, anchors.years)}\n\n"
		f"{OUTPUT_RULES}"
	)
