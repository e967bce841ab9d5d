from typing import List, Union
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
	# Pydantic v2 configuration
	model_config = SettingsConfigDict(
		env_file=".env",
		env_file_encoding='utf-8',
		case_sensitive=False,
		extra='ignore'  # Allow extra fields from .env without raising errors
	)

	# Application Configuration
	app_name: str = "IntervAI"
	app_version: str = "1.0.0"
	debug: bool = False

	# Database configuration
	database_url: str = "sqlite:///./intervai.db"

	# Token verification
	jwt_secret_key: str = "change-me"
	jwt_algorithm: str = "HS256"
	access_token_expire_hours: int = 24

	# Audio files recorded during interviews
	interview_dir: str = "./data/interview"

	# Logging configuration
	log_level: str = "INFO"
	log_file: str = ""
	log_json: bool = False

	# CORS - Handle both string and list formats
	allowed_origins: Union[List[str], str] = "*"

	# AI Configuration
	openai_api_key: str = ""
	openai_project: str = ""
	openai_timeout: float = 120.0

	# LLM per operation
	default_llm: str = "gpt-4.1-mini"
	question_llm: str = "gpt-4.1-mini"
	evaluation_llm: str = "gpt-4.1-mini"
	report_llm: str = "gpt-4.1-mini"
	chat_llm: str = "gpt-4.1-mini"
	stt_llm: str = "whisper-1"
	tts_llm: str = "gpt-4o-mini-tts"
	default_voice: str = "alloy"

	# Usage limits
	monthly_interview_quota: int = 30
	rate_limit_enabled: bool = True

	# Evaluation worker (Celery)
	celery_broker_url: str = "redis://localhost:6379/0"
	celery_result_backend: str = "redis://localhost:6379/0"
	celery_task_always_eager: bool = False
	evaluation_max_attempts: int = 3
	evaluation_retry_backoff: float = 5.0
	# jobs per minute, per worker
	evaluation_rate_limit_max: int = 10

	def get_allowed_origins(self) -> List[str]:
		if isinstance(self.allowed_origins, str):
			# Handle string format from environment variable
			import json
			try:
				return json.loads(self.allowed_origins)
			except json.JSONDecodeError:
				# Fallback to single origin
				return [self.allowed_origins]
		return self.allowed_origins


settings = Settings()
