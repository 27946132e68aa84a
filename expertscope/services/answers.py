from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from expertscope.schemas import UserAnswers


NAME_KEYS = ("basic_name", "name")
EXPERTISE_KEYS = ("expertise_main_field", "expertise_field", "expertiseField")
YEARS_KEYS = ("expertise_years", "experience_years")

DEFAULT_NAME = "고객"
DEFAULT_EXPERTISE = "전문 분야"
DEFAULT_YEARS = "경력"


@dataclass(frozen=True)
class Anchors:
	"""The few answers interpolated into prompts and fallback templates."""

	name: str
	expertise: str
	years: str


def _as_text(value: Any) -> str:
	if value is None or isinstance(value, bool):
		return ""
	if isinstance(value, (list, tuple)):
		return ", ".join(_as_text(v) for v in value if _as_text(v))
	return str(value).strip()


def _first_answer(answers: UserAnswers, keys: Sequence[str], default: str) -> str:
	for key in keys:
		text = _as_text(answers.get(key))
		if text:
			return text
	return default


def extract_anchors(answers: UserAnswers) -> Anchors:
	return Anchors(
		name=_first_answer(answers, NAME_KEYS, DEFAULT_NAME),
		expertise=_first_answer(answers, EXPERTISE_KEYS, DEFAULT_EXPERTISE),
		years=_first_answer(answers, YEARS_KEYS, DEFAULT_YEARS),
	)
