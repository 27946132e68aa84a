from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import anyio
import httpx

from expertscope.services.cost_accountant import CostAccountant
from expertscope.services.prompt_builder import SYSTEM_PROMPT


logger = logging.getLogger(__name__)


class ProviderError(Exception):
	"""A single provider attempt failed; the orchestrator moves on."""

	def __init__(self, provider: str, message: str, status: Optional[int] = None) -> None:
		self.provider = provider
		self.status = status
		detail = f"{provider}: {message}"
		if status is not None:
			detail = f"{provider} (HTTP {status}): {message}"
		super().__init__(detail)


class ProviderNotConfiguredError(ProviderError):
	pass


@dataclass(frozen=True)
class TokenUsage:
	prompt_tokens: int
	completion_tokens: int

	@property
	def total_tokens(self) -> int:
		return self.prompt_tokens + self.completion_tokens


@dataclass(frozen=True)
class ProviderReply:
	provider: str
	text: str
	usage: Optional[TokenUsage] = None


class LLMProvider(ABC):
	"""One upstream model. ``complete`` either returns text or raises ProviderError."""

	def __init__(self, http: httpx.AsyncClient, timeout: float, accountant: Optional[CostAccountant] = None) -> None:
		self._http = http
		self.timeout = timeout
		self.accountant = accountant

	@property
	@abstractmethod
	def name(self) -> str:
		raise NotImplementedError

	@property
	def configured(self) -> bool:
		return True

	@abstractmethod
	async def _send(self, prompt: str) -> ProviderReply:
		raise NotImplementedError

	async def complete(self, prompt: str) -> ProviderReply:
		if not self.configured:
			raise ProviderNotConfiguredError(self.name, "not configured (missing API key or disabled)")
		try:
			reply = await self._send(prompt)
		except ProviderError:
			raise
		except httpx.TimeoutException as exc:
			raise ProviderError(self.name, f"timed out after {self.timeout:g}s") from exc
		except httpx.HTTPError as exc:
			raise ProviderError(self.name, f"transport error: {exc}") from exc
		except (ValueError, KeyError, IndexError, TypeError) as exc:
			raise ProviderError(self.name, f"malformed response: {exc}") from exc
		if reply.usage is not None:
			await self._report_usage(reply.usage)
		return reply

	async def _report_usage(self, usage: TokenUsage) -> None:
		if self.accountant is None:
			return
		try:
			# Usage stores may hit the disk
			alert = await anyio.to_thread.run_sync(
				self.accountant.record, self.model_id, usage.prompt_tokens, usage.completion_tokens
			)
		except Exception:
			logger.exception("Usage accounting failed for %s", self.name)
			return
		if alert is None:
			return
		if alert.type == "critical":
			logger.error("Cost alert: %s", alert.message)
		else:
			logger.warning("Cost alert: %s", alert.message)

	@property
	def model_id(self) -> str:
		return self.name

	def _check_status(self, resp: httpx.Response) -> None:
		if resp.is_success:
			return
		body = resp.text[:300]
		raise ProviderError(self.name, f"{resp.reason_phrase} - {body}", status=resp.status_code)


class OpenAIChatProvider(LLMProvider):
	"""Chat completions on any OpenAI-compatible API."""

	def __init__(
		self,
		http: httpx.AsyncClient,
		model: str,
		api_key: Optional[str],
		*,
		base_url: str = "https://api.openai.com/v1",
		max_tokens: int = 1500,
		temperature: float = 0.7,
		timeout: float = 20.0,
		accountant: Optional[CostAccountant] = None,
	) -> None:
		super().__init__(http, timeout, accountant)
		self.model = model
		self._api_key = api_key
		self._url = base_url.rstrip("/") + "/chat/completions"
		self.max_tokens = max_tokens
		self.temperature = temperature

	@property
	def name(self) -> str:
		return f"openai:{self.model}"

	@property
	def model_id(self) -> str:
		return self.model

	@property
	def configured(self) -> bool:
		return bool(self._api_key)

	async def _send(self, prompt: str) -> ProviderReply:
		resp = await self._http.post(
			self._url,
			headers={"Authorization": f"Bearer {self._api_key}"},
			json={
				"model": self.model,
				"messages": [
					{"role": "system", "content": SYSTEM_PROMPT},
					{"role": "user", "content": prompt},
				],
				"temperature": self.temperature,
				"max_tokens": self.max_tokens,
				"response_format": {"type": "json_object"},
			},
			timeout=self.timeout,
		)
		self._check_status(resp)
		data = resp.json()
		content = data["choices"][0]["message"]["content"]
		if not isinstance(content, str) or not content.strip():
			raise ProviderError(self.name, "empty completion content")
		usage = data.get("usage") or {}
		return ProviderReply(
			provider=self.name,
			text=content,
			usage=TokenUsage(
				prompt_tokens=int(usage.get("prompt_tokens") or 0),
				completion_tokens=int(usage.get("completion_tokens") or 0),
			),
		)


def _generated_text(data: Any) -> str:
	# Inference endpoints answer with [{"generated_text": ...}] or a bare object
	if isinstance(data, list):
		data = data[0] if data else {}
	if not isinstance(data, dict):
		return ""
	text = data.get("generated_text") or data.get("text") or ""
	return text if isinstance(text, str) else ""


HF_INSTRUCT_TEMPLATE = "<s>[INST] {prompt} [/INST]"
HF_MIN_REPLY_CHARS = 50


class HuggingFaceProvider(LLMProvider):
	"""Text-generation inference endpoint; the key is optional."""

	def __init__(
		self,
		http: httpx.AsyncClient,
		model_url: str,
		api_key: Optional[str] = None,
		*,
		enabled: bool = True,
		max_new_tokens: int = 1024,
		temperature: float = 0.7,
		timeout: float = 15.0,
		prompt_template: str = HF_INSTRUCT_TEMPLATE,
		min_reply_chars: int = HF_MIN_REPLY_CHARS,
	) -> None:
		super().__init__(http, timeout)
		self.model_url = model_url
		self._api_key = api_key
		self._enabled = enabled
		self.max_new_tokens = max_new_tokens
		self.temperature = temperature
		self.prompt_template = prompt_template
		self.min_reply_chars = min_reply_chars

	@property
	def name(self) -> str:
		return "huggingface:" + self.model_url.rstrip("/").rsplit("/models/", 1)[-1]

	@property
	def configured(self) -> bool:
		return self._enabled

	def _payload(self, prompt: str) -> Dict[str, Any]:
		return {
			# The prompt carries JSON braces, so no str.format here
			"inputs": self.prompt_template.replace("{prompt}", prompt),
			"parameters": {
				"max_new_tokens": self.max_new_tokens,
				"temperature": self.temperature,
				"return_full_text": False,
			},
		}

	async def _send(self, prompt: str) -> ProviderReply:
		headers = {}
		if self._api_key:
			headers["Authorization"] = f"Bearer {self._api_key}"
		resp = await self._http.post(self.model_url, headers=headers, json=self._payload(prompt), timeout=self.timeout)
		self._check_status(resp)
		text = _generated_text(resp.json()).strip()
		if not text:
			raise ProviderError(self.name, "no generated_text in response")
		if len(text) < self.min_reply_chars:
			raise ProviderError(self.name, f"reply too short ({len(text)} chars)")
		return ProviderReply(provider=self.name, text=text)
