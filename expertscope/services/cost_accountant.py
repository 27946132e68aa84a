from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass, asdict
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol


logger = logging.getLogger(__name__)


# USD per token
MODEL_RATES: Dict[str, Dict[str, float]] = {
	"gpt-4o": {"input": 2.5 / 1_000_000, "output": 10 / 1_000_000},
	"gpt-4o-mini": {"input": 0.15 / 1_000_000, "output": 0.6 / 1_000_000},
	"claude-3.5-sonnet": {"input": 3 / 1_000_000, "output": 15 / 1_000_000},
}
FALLBACK_RATE_MODEL = "gpt-4o-mini"

_DAY_SECONDS = 24 * 60 * 60


def calculate_cost(model: str, prompt_tokens: int, completion_tokens: int) -> float:
	rate = MODEL_RATES.get(model) or MODEL_RATES[FALLBACK_RATE_MODEL]
	return prompt_tokens * rate["input"] + completion_tokens * rate["output"]


@dataclass
class UsageRecord:
	total_requests: int = 0
	total_tokens: int = 0
	estimated_cost: float = 0.0
	model: str = ""
	timestamp: float = 0.0


@dataclass(frozen=True)
class CostAlert:
	type: str  # "warning" | "critical"
	message: str
	current_cost: float
	threshold: float


class UsageStore(Protocol):
	def get(self, key: str) -> Optional[dict]: ...

	def set(self, key: str, value: dict) -> None: ...

	def delete(self, key: str) -> None: ...

	def clear(self) -> None: ...

	def keys(self) -> List[str]: ...


class InMemoryUsageStore:
	def __init__(self) -> None:
		self._data: Dict[str, dict] = {}

	def get(self, key: str) -> Optional[dict]:
		value = self._data.get(key)
		return dict(value) if value is not None else None

	def set(self, key: str, value: dict) -> None:
		self._data[key] = dict(value)

	def delete(self, key: str) -> None:
		self._data.pop(key, None)

	def clear(self) -> None:
		self._data.clear()

	def keys(self) -> List[str]:
		return list(self._data)


class JsonFileUsageStore:
	"""Usage records kept in a single JSON document on disk.

	An unreadable document is treated as empty and replaced on the next
	write. Writes go to a sibling temp file that is then renamed over the
	document, so readers never see a half-written file.
	"""

	def __init__(self, path: str | Path) -> None:
		self._path = Path(path)
		self._lock = threading.Lock()

	def _load(self) -> Dict[str, dict]:
		if not self._path.exists():
			return {}
		try:
			with self._path.open("r", encoding="utf-8") as f:
				data = json.load(f)
		except ValueError:
			logger.warning("Usage store %s is corrupt; starting from empty", self._path)
			return {}
		if not isinstance(data, dict):
			return {}
		return {k: v for k, v in data.items() if isinstance(v, dict)}

	def _dump(self, data: Dict[str, dict]) -> None:
		self._path.parent.mkdir(parents=True, exist_ok=True)
		tmp = self._path.with_suffix(self._path.suffix + ".tmp")
		with tmp.open("w", encoding="utf-8") as f:
			json.dump(data, f, ensure_ascii=False, indent=2)
		tmp.replace(self._path)

	def get(self, key: str) -> Optional[dict]:
		with self._lock:
			return self._load().get(key)

	def set(self, key: str, value: dict) -> None:
		with self._lock:
			data = self._load()
			data[key] = value
			self._dump(data)

	def delete(self, key: str) -> None:
		with self._lock:
			data = self._load()
			if data.pop(key, None) is not None:
				self._dump(data)

	def clear(self) -> None:
		with self._lock:
			self._dump({})

	def keys(self) -> List[str]:
		with self._lock:
			return list(self._load())


class CostAccountant:
	"""Estimates LLM spend per day and raises budget alerts.

	Purely advisory: callers must not let a failure here change the
	analysis they return.
	"""

	def __init__(
		self,
		store: UsageStore,
		daily_budget: float = 10.0,
		monthly_budget: float = 300.0,
		warning_ratio: float = 0.7,
		critical_ratio: float = 0.9,
		retention_days: int = 30,
		clock: Callable[[], float] = time.time,
	) -> None:
		self._store = store
		self.daily_budget = daily_budget
		self.monthly_budget = monthly_budget
		self._warning_ratio = warning_ratio
		self._critical_ratio = critical_ratio
		self._retention_days = retention_days
		self._clock = clock

	def today_key(self) -> str:
		return date.fromtimestamp(self._clock()).isoformat()

	def record(self, model: str, prompt_tokens: int, completion_tokens: int) -> Optional[CostAlert]:
		cost = calculate_cost(model, prompt_tokens, completion_tokens)
		key = self.today_key()
		raw = self._store.get(key)
		rec = UsageRecord(**raw) if raw else UsageRecord(model=model, timestamp=self._clock())
		rec.total_requests += 1
		rec.total_tokens += prompt_tokens + completion_tokens
		rec.estimated_cost += cost
		self._store.set(key, asdict(rec))
		self._prune()
		logger.info("%s usage: %d tokens, ~$%.4f (today $%.4f)", model, prompt_tokens + completion_tokens, cost, rec.estimated_cost)
		return self.check_budget(rec.estimated_cost)

	def check_budget(self, daily_cost: float) -> Optional[CostAlert]:
		if daily_cost >= self.daily_budget * self._critical_ratio:
			return CostAlert(
				type="critical",
				message=f"Daily budget {self._critical_ratio:.0%} exceeded: ${daily_cost:.2f} of ${self.daily_budget:g}",
				current_cost=daily_cost,
				threshold=self.daily_budget,
			)
		if daily_cost >= self.daily_budget * self._warning_ratio:
			return CostAlert(
				type="warning",
				message=f"Daily budget {self._warning_ratio:.0%} reached: ${daily_cost:.2f} of ${self.daily_budget:g}",
				current_cost=daily_cost,
				threshold=self.daily_budget,
			)
		return None

	def _prune(self) -> None:
		cutoff = self._clock() - self._retention_days * _DAY_SECONDS
		for key in self._store.keys():
			raw = self._store.get(key) or {}
			if raw.get("timestamp", 0) <= cutoff:
				self._store.delete(key)

	def today_usage(self) -> Optional[UsageRecord]:
		raw = self._store.get(self.today_key())
		return UsageRecord(**raw) if raw else None

	def monthly_usage(self) -> Dict[str, float]:
		now = datetime.fromtimestamp(self._clock())
		totals = {"cost": 0.0, "requests": 0, "tokens": 0}
		for key in self._store.keys():
			try:
				day = date.fromisoformat(key)
			except ValueError:
				continue
			if (day.year, day.month) != (now.year, now.month):
				continue
			rec = UsageRecord(**(self._store.get(key) or {}))
			totals["cost"] += rec.estimated_cost
			totals["requests"] += rec.total_requests
			totals["tokens"] += rec.total_tokens
		return totals

	def saving_recommendations(self) -> List[str]:
		month = self.monthly_usage()
		tips: List[str] = []
		if month["cost"] > self.monthly_budget * 0.8:
			tips.append(f"Switch the primary model to {FALLBACK_RATE_MODEL} for the rest of the month")
			tips.append("Enable result caching")
		if month["requests"] > 1000:
			tips.append("Cache analyses to avoid duplicate requests")
		return tips

	def update_budgets(self, daily: float, monthly: float) -> None:
		self.daily_budget = daily
		self.monthly_budget = monthly
		logger.info("Budget updated: daily $%g, monthly $%g", daily, monthly)
