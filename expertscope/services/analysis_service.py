from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import httpx

from expertscope.config import Settings
from expertscope.schemas import AnalysisResult, UserAnswers
from expertscope.services.cost_accountant import CostAccountant, InMemoryUsageStore, JsonFileUsageStore, UsageStore
from expertscope.services.prompt_builder import build_analysis_prompt
from expertscope.services.providers import (
	HuggingFaceProvider,
	LLMProvider,
	OpenAIChatProvider,
	ProviderError,
	ProviderNotConfiguredError,
)
from expertscope.services.response_parser import AnalysisParseError, AnalysisResponseParser
from expertscope.services.synthetic import SyntheticFallbackGenerator


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisOutcome:
	result: AnalysisResult
	provider: Optional[str]  # None when no provider answered
	degraded: bool


class AnalysisService:
	"""Runs the provider chain for one interview submission.

	Providers are tried strictly in order, one awaited call at a time. The
	first reply ends the chain; if it cannot be parsed the synthetic analysis
	is returned instead of trying further providers. Exhausting the chain also
	yields the synthetic analysis, so ``analyze`` never raises except when the
	caller cancels.
	"""

	def __init__(
		self,
		providers: Sequence[LLMProvider],
		parser: AnalysisResponseParser,
		fallback: SyntheticFallbackGenerator,
	) -> None:
		self.providers: List[LLMProvider] = list(providers)
		self.parser = parser
		self.fallback = fallback

	async def analyze(self, answers: UserAnswers) -> AnalysisResult:
		outcome = await self.run(answers)
		return outcome.result

	async def run(self, answers: UserAnswers) -> AnalysisOutcome:
		prompt = build_analysis_prompt(answers)

		for provider in self.providers:
			try:
				reply = await provider.complete(prompt)
			except ProviderNotConfiguredError as exc:
				logger.info("Skipping %s: %s", provider.name, exc)
				continue
			except ProviderError as exc:
				logger.warning("Provider %s failed, trying next: %s", provider.name, exc)
				continue
			except Exception:
				logger.exception("Unexpected error from provider %s, trying next", provider.name)
				continue

			try:
				result = self.parser.extract(reply.text)
			except AnalysisParseError as exc:
				self.parser.log_failure(reply.text, exc)
				return AnalysisOutcome(self.fallback.generate(answers), reply.provider, degraded=True)
			logger.info("Analysis produced by %s", reply.provider)
			return AnalysisOutcome(result, reply.provider, degraded=False)

		logger.error("All LLM providers failed; using synthetic analysis")
		return AnalysisOutcome(self.fallback.generate(answers), None, degraded=True)

	def provider_status(self) -> List[dict]:
		return [{"name": p.name, "configured": p.configured} for p in self.providers]


def build_usage_store(settings: Settings) -> UsageStore:
	if settings.usage_store_path:
		return JsonFileUsageStore(settings.usage_store_path)
	return InMemoryUsageStore()


def build_cost_accountant(settings: Settings, store: Optional[UsageStore] = None) -> CostAccountant:
	return CostAccountant(
		store if store is not None else build_usage_store(settings),
		daily_budget=settings.daily_budget_usd,
		monthly_budget=settings.monthly_budget_usd,
		warning_ratio=settings.budget_warning_ratio,
		critical_ratio=settings.budget_critical_ratio,
		retention_days=settings.usage_retention_days,
	)


def build_analysis_service(
	settings: Settings,
	http: httpx.AsyncClient,
	accountant: Optional[CostAccountant] = None,
) -> AnalysisService:
	"""Wire the fixed chain: primary model, cheaper model, Hugging Face."""
	providers: List[LLMProvider] = [
		OpenAIChatProvider(
			http,
			settings.primary_model,
			settings.openai_api_key,
			base_url=settings.openai_base_url,
			max_tokens=settings.primary_max_tokens,
			temperature=settings.analysis_temperature,
			timeout=settings.primary_timeout_seconds,
			accountant=accountant,
		),
		OpenAIChatProvider(
			http,
			settings.secondary_model,
			settings.openai_api_key,
			base_url=settings.openai_base_url,
			max_tokens=settings.secondary_max_tokens,
			temperature=settings.analysis_temperature,
			timeout=settings.secondary_timeout_seconds,
			accountant=accountant,
		),
		HuggingFaceProvider(
			http,
			settings.huggingface_model_url,
			settings.huggingface_api_key,
			enabled=settings.huggingface_enabled,
			max_new_tokens=settings.huggingface_max_new_tokens,
			temperature=settings.analysis_temperature,
			timeout=settings.huggingface_timeout_seconds,
			prompt_template=settings.huggingface_prompt_template,
			min_reply_chars=settings.huggingface_min_reply_chars,
		),
	]
	fallback = SyntheticFallbackGenerator(randomize=settings.fallback_randomize, seed=settings.fallback_seed)
	return AnalysisService(providers, AnalysisResponseParser(fallback), fallback)
