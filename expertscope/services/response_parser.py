from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List

from expertscope.schemas import (
	AnalysisResult,
	DEFAULT_EXPERTISE_SCORE,
	DEFAULT_SUCCESS_PROBABILITY,
	UserAnswers,
)
from expertscope.services.synthetic import SyntheticFallbackGenerator


logger = logging.getLogger(__name__)


# Lead-ins models emit before the JSON despite being told not to
_PREFIX_PATTERNS = [
	re.compile(r"^I'm sorry[^{]*", re.IGNORECASE),
	re.compile(r"^Here is[^{]*", re.IGNORECASE),
	re.compile(r"^Here's[^{]*", re.IGNORECASE),
	re.compile(r"^Sure[^{]*", re.IGNORECASE),
	re.compile(r"^다음은[^{]*"),
	re.compile(r"^아래는[^{]*"),
	re.compile(r"^JSON 응답[^{]*"),
	re.compile(r"^분석 결과[^{]*"),
]
_FENCE_OPEN = re.compile(r"```(?:json|JSON)?\s*")
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")
_LEADING_INT = re.compile(r"^\s*([+-]?\d{1,9})")

REQUIRED_FIELDS = ("expertiseScore", "personalizedInsight", "businessHint")


class AnalysisParseError(ValueError):
	pass


@dataclass
class ParseStats:
	total: int = 0
	successful: int = 0
	failed: int = 0

	@property
	def success_rate(self) -> float:
		if not self.total:
			return 0.0
		return self.successful / self.total

	def as_dict(self) -> Dict[str, Any]:
		return {
			"total": self.total,
			"successful": self.successful,
			"failed": self.failed,
			"success_rate": round(self.success_rate, 4),
		}


def sanitize_response(raw: str) -> str:
	"""Reduce a model reply to the most likely JSON object text."""
	text = (raw or "").strip()
	for pattern in _PREFIX_PATTERNS:
		text = pattern.sub("", text, count=1)
	text = _FENCE_OPEN.sub("", text)
	match = _JSON_OBJECT.search(text)
	if match:
		text = match.group(0)
	return _TRAILING_COMMA.sub(r"\1", text)


def _coerce_score(value: Any) -> int:
	score = None
	if isinstance(value, bool):
		score = None
	elif isinstance(value, int):
		score = value
	elif isinstance(value, float):
		if math.isfinite(value):
			score = int(value)
	elif isinstance(value, str):
		m = _LEADING_INT.match(value)
		if m:
			score = int(m.group(1))
	if not score:
		return DEFAULT_EXPERTISE_SCORE
	return max(0, min(100, score))


def _coerce_text(value: Any, default: str = "") -> str:
	if isinstance(value, str):
		return value.strip() or default
	if isinstance(value, (int, float)) and not isinstance(value, bool):
		return str(value)
	return default


def _coerce_probability(value: Any) -> str:
	if isinstance(value, float) and not math.isfinite(value):
		return DEFAULT_SUCCESS_PROBABILITY
	if isinstance(value, (int, float)) and not isinstance(value, bool):
		return f"{value:g}%"
	return _coerce_text(value, DEFAULT_SUCCESS_PROBABILITY)


def _coerce_strengths(value: Any) -> List[str]:
	if not isinstance(value, list):
		return []
	return [t for t in (_coerce_text(v) for v in value) if t]


def _to_result(parsed: Dict[str, Any]) -> AnalysisResult:
	return AnalysisResult(
		expertise_score=_coerce_score(parsed.get("expertiseScore")),
		personalized_insight=_coerce_text(parsed.get("personalizedInsight")),
		business_hint=_coerce_text(parsed.get("businessHint")),
		market_opportunity=_coerce_text(parsed.get("marketOpportunity")),
		success_probability=_coerce_probability(parsed.get("successProbability")),
		key_strengths=_coerce_strengths(parsed.get("keyStrengths")),
		next_step_teaser=_coerce_text(parsed.get("nextStepTeaser")),
		exclusive_value=_coerce_text(parsed.get("exclusiveValue")),
		urgency_factor=_coerce_text(parsed.get("urgencyFactor")),
	)


def _preview(raw: str, limit: int = 200) -> str:
	return raw[:limit] + ("..." if len(raw) > limit else "")


class AnalysisResponseParser:
	def __init__(self, fallback: SyntheticFallbackGenerator) -> None:
		self._fallback = fallback
		self.stats = ParseStats()

	def extract(self, raw: str) -> AnalysisResult:
		"""Parse a model reply or raise :class:`AnalysisParseError`."""
		self.stats.total += 1
		cleaned = sanitize_response(raw)
		try:
			parsed = json.loads(cleaned)
		except (ValueError, RecursionError) as exc:
			# RecursionError: pathologically nested arrays or objects
			self.stats.failed += 1
			raise AnalysisParseError(f"invalid JSON: {exc}") from exc
		if not isinstance(parsed, dict):
			self.stats.failed += 1
			raise AnalysisParseError(f"expected a JSON object, got {type(parsed).__name__}")
		missing = [f for f in REQUIRED_FIELDS if not parsed.get(f)]
		if missing:
			self.stats.failed += 1
			raise AnalysisParseError(f"missing required field(s): {', '.join(missing)}")
		try:
			result = _to_result(parsed)
		except (ValueError, TypeError, OverflowError, RecursionError) as exc:
			self.stats.failed += 1
			raise AnalysisParseError(f"unusable field values: {exc}") from exc
		self.stats.successful += 1
		return result

	def parse(self, raw: str, answers: UserAnswers) -> AnalysisResult:
		"""Total variant of :meth:`extract`: unusable replies become the synthetic analysis."""
		try:
			return self.extract(raw)
		except AnalysisParseError as exc:
			self.log_failure(raw, exc)
			return self._fallback.generate(answers)

	def log_failure(self, raw: str, exc: Exception) -> None:
		raw = raw or ""
		logger.warning(
			"Analysis JSON parse failed (%s); falling back to synthetic analysis. "
			"length=%d success_rate=%.1f%% response=%r",
			exc,
			len(raw),
			self.stats.success_rate * 100,
			_preview(raw),
		)
