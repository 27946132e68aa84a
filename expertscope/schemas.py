from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Optional


# Interview answers keyed by question id. Values are str, list of str or numbers.
UserAnswers = Dict[str, Any]


DEFAULT_EXPERTISE_SCORE = 85
DEFAULT_SUCCESS_PROBABILITY = "85%"


class AnalysisResult(BaseModel):
	"""Normalized business-opportunity analysis shown on the report page.

	Attribute names are snake_case; the JSON representation uses the camelCase
	names the frontend expects (``expertiseScore``, ``keyStrengths`` ...).
	"""

	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

	expertise_score: int = Field(default=DEFAULT_EXPERTISE_SCORE, ge=0, le=100)
	personalized_insight: str = ""
	business_hint: str = ""
	market_opportunity: str = ""
	success_probability: str = DEFAULT_SUCCESS_PROBABILITY
	key_strengths: List[str] = Field(default_factory=list)
	next_step_teaser: str = ""
	exclusive_value: str = ""
	urgency_factor: str = ""

	def to_payload(self) -> Dict[str, Any]:
		return self.model_dump(by_alias=True)


class AnalyzeRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	interview_data: Optional[UserAnswers] = Field(default=None, alias="interviewData")
	answers: Optional[UserAnswers] = None

	def resolve_answers(self) -> Optional[UserAnswers]:
		if self.interview_data is not None:
			return self.interview_data
		return self.answers


class AnalyzeResponse(BaseModel):
	success: bool = True
	data: AnalysisResult
	message: str


class UsageRecordOut(BaseModel):
	date: str
	total_requests: int
	total_tokens: int
	estimated_cost: float
	model: str


class MonthlyUsageOut(BaseModel):
	cost: float
	requests: int
	tokens: int


class UsageSummary(BaseModel):
	today: Optional[UsageRecordOut] = None
	month: MonthlyUsageOut
	daily_budget: float
	monthly_budget: float
	recommendations: List[str]
