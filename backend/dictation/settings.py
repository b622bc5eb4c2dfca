from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
	# Provider can be "vertex" (Vertex AI Express) or "ai_studio" (Generative Language API)
	gemini_provider: str = Field(default="ai_studio", validation_alias="GEMINI_PROVIDER")
	gemini_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_MODEL")
	vertex_region: str = Field(default="us-central1", validation_alias="GEMINI_VERTEX_REGION")
	vertex_project: str | None = Field(default=None, validation_alias="GEMINI_VERTEX_PROJECT")

	# OpenRouter fallback configuration (optional)
	openrouter_api_key: str | None = Field(default=None, validation_alias="OPENROUTER_API_KEY")
	openrouter_model: str = Field(default="x-ai/grok-4-fast:free", validation_alias="OPENROUTER_MODEL")
	openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1/chat/completions", validation_alias="OPENROUTER_BASE_URL")

	# Text-to-speech provider (Humelo Prosody)
	tts_api_url: str = Field(
		default="https://agitvxptajouhvoatxio.supabase.co/functions/v1/dive-synthesize-v1",
		validation_alias="TTS_API_URL",
	)
	tts_api_key: str | None = Field(default=None, validation_alias="HUMELO_API_KEY")
	tts_language: str = Field(default="ko", validation_alias="TTS_LANGUAGE")
	tts_output_format: str = Field(default="mp3", validation_alias="TTS_OUTPUT_FORMAT")
	tts_emotion: str = Field(default="neutral", validation_alias="TTS_EMOTION")
	tts_timeout_seconds: float = Field(default=60.0, validation_alias="TTS_TIMEOUT_SECONDS")
	# Number of problem sets whose audio may be synthesized at the same time
	tts_worker_concurrency: int = Field(default=2, validation_alias="TTS_WORKER_CONCURRENCY")
	# Finished/errored job statuses stay visible to pollers for this long
	tts_status_retention_seconds: float = Field(default=300.0, validation_alias="TTS_STATUS_RETENTION_SECONDS")
	tts_status_sweep_seconds: float = Field(default=60.0, validation_alias="TTS_STATUS_SWEEP_SECONDS")

	# Audio assets live under {audio_dir}/problem_{id}/sentence_{n}.mp3
	audio_dir: str = Field(default="./audio", validation_alias="AUDIO_DIR")

	# Exam delivery pacing
	exam_advance_seconds: float = Field(default=5.0, validation_alias="EXAM_ADVANCE_SECONDS")
	exam_repeat_pause_seconds: float = Field(default=0.8, validation_alias="EXAM_REPEAT_PAUSE_SECONDS")
	exam_playback_speed: float = Field(default=0.8, validation_alias="EXAM_PLAYBACK_SPEED")
	# Command used by the delivery player; {path} and {speed} are substituted
	exam_player_command: str = Field(default="ffplay -nodisp -autoexit -loglevel quiet -af atempo={speed} {path}", validation_alias="EXAM_PLAYER_COMMAND")

	# Teacher login (disabled unless a seed account is configured)
	jwt_secret_key: str = Field(default="change-me", validation_alias="JWT_SECRET_KEY")
	jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
	access_token_expire_minutes: int = Field(default=720, validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES")
	seed_username: str | None = Field(default=None, validation_alias="SEED_USERNAME")
	seed_password_plain: str | None = Field(default=None, validation_alias="SEED_PASSWORD")

	# Database
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

	@property
	def teacher_auth_enabled(self) -> bool:
		return bool(self.seed_username and self.seed_password_plain)

settings = Settings()
