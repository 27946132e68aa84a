from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import List
from dotenv import load_dotenv


# Ensure .env is loaded eagerly
load_dotenv(dotenv_path=".env")


class Settings(BaseSettings):
	# Server
	host: str = "0.0.0.0"
	port: int = 8000
	cors_allow_origins: List[str] = ["*"]

	# Provider A: any OpenAI-compatible chat completions API
	openai_api_key: str | None = None
	openai_base_url: str = "https://api.openai.com/v1"
	primary_model: str = "gpt-4o"
	secondary_model: str = "gpt-4o-mini"
	primary_max_tokens: int = 2000
	secondary_max_tokens: int = 1500
	primary_timeout_seconds: float = 30.0
	secondary_timeout_seconds: float = 20.0
	analysis_temperature: float = 0.7

	# Provider B: Hugging Face inference (anonymous when no key)
	huggingface_enabled: bool = True
	huggingface_api_key: str | None = None
	huggingface_model_url: str = "https://api-inference.huggingface.co/models/mistralai/Mistral-7B-Instruct-v0.3"
	huggingface_max_new_tokens: int = 1024
	huggingface_timeout_seconds: float = 15.0
	# Instruct wrapper for the model behind huggingface_model_url
	huggingface_prompt_template: str = "<s>[INST] {prompt} [/INST]"
	huggingface_min_reply_chars: int = 50

	# Cost accounting (USD)
	daily_budget_usd: float = 10.0
	monthly_budget_usd: float = 300.0
	budget_warning_ratio: float = 0.7
	budget_critical_ratio: float = 0.9
	usage_retention_days: int = 30
	usage_store_path: str | None = None  # e.g., data/llm_usage.json; in-memory when unset

	# Synthetic fallback
	fallback_randomize: bool = False
	fallback_seed: int | None = None

	# Logging
	log_level: str = "INFO"
	analytics_path: str | None = None  # e.g., logs/analysis.jsonl

	@field_validator("analysis_temperature")
	@classmethod
	def clamp_temperature(cls, v: float) -> float:
		return max(0.0, min(1.0, v))

	@field_validator("cors_allow_origins", mode="before")
	@classmethod
	def parse_cors_origins(cls, v):
		# Allow environment variable override
		if isinstance(v, str):
			return [origin.strip() for origin in v.split(",")]
		return v

	@property
	def openai_enabled(self) -> bool:
		return bool(self.openai_api_key)

	class Config:
		env_file = ".env"
		env_file_encoding = "utf-8"


settings = Settings()
