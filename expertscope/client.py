from __future__ import annotations

import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from expertscope.schemas import AnalysisResult, UserAnswers
from expertscope.services.synthetic import SyntheticFallbackGenerator


logger = logging.getLogger(__name__)


class AnalysisClient:
	"""Calls the analysis endpoint the way the funnel frontend does.

	Any failure (transport, non-2xx, ``success: false``, bad payload) resolves
	to the locally generated analysis so the report page always has data.
	"""

	def __init__(
		self,
		base_url: str,
		*,
		path: str = "/api/ai-analyze",
		timeout: float = 45.0,
		http_client: Optional[httpx.AsyncClient] = None,
		fallback: Optional[SyntheticFallbackGenerator] = None,
	) -> None:
		self._url = base_url.rstrip("/") + path
		self._timeout = timeout
		self._http = http_client
		self._fallback = fallback or SyntheticFallbackGenerator()

	async def _post(self, answers: UserAnswers) -> httpx.Response:
		if self._http is not None:
			return await self._http.post(self._url, json={"interviewData": answers}, timeout=self._timeout)
		async with httpx.AsyncClient(timeout=self._timeout) as http:
			return await http.post(self._url, json={"interviewData": answers})

	async def analyze(self, answers: UserAnswers) -> AnalysisResult:
		try:
			resp = await self._post(answers)
			resp.raise_for_status()
			body = resp.json()
			if not body.get("success"):
				raise ValueError(body.get("message") or body.get("error") or "analysis failed")
			return AnalysisResult.model_validate(body["data"])
		except (httpx.HTTPError, ValueError, KeyError, AttributeError, ValidationError) as exc:
			logger.warning("Analysis endpoint %s failed, using local fallback: %s", self._url, exc)
			return self._fallback.generate(answers)
