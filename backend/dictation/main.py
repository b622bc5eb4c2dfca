from typing import Optional
import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from .audio_store import AudioStore
from .db import Base, engine as default_engine, ensure_schema
from .errors import DictationError
from .settings import Settings, settings as default_settings
from .tts_client import TtsClient
from .tts_jobs import Synthesizer, TtsJobRunner, TtsWorker
from .tts_status import TtsStatusRegistry
from .routers import audio, auth, problem_sets, sessions, submissions, tts

logger = logging.getLogger(__name__)
if not logging.getLogger().handlers:
	logging.basicConfig(level=logging.INFO)


def create_app(
	config: Optional[Settings] = None,
	*,
	engine: Optional[Engine] = None,
	synthesizer: Optional[Synthesizer] = None,
	audio_store: Optional[AudioStore] = None,
	registry: Optional[TtsStatusRegistry] = None,
) -> FastAPI:
	"""Composition root: every shared component is built here and stored on app.state."""
	config = config or default_settings
	engine = engine or default_engine

	app = FastAPI(title="Dictation Quiz API")
	app.include_router(auth.router)
	app.include_router(problem_sets.router)
	app.include_router(tts.router)
	app.include_router(sessions.router)
	app.include_router(submissions.router)
	app.include_router(audio.router)

	app.state.settings = config
	app.state.audio_store = audio_store or AudioStore(config.audio_dir)
	app.state.tts_registry = registry or TtsStatusRegistry(retention_seconds=config.tts_status_retention_seconds)
	app.state.synthesizer = synthesizer
	app.state.tts_worker = None

	@app.exception_handler(DictationError)
	async def _dictation_error(request: Request, exc: DictationError):
		return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

	@app.get("/info")
	def info():
		return {
			"status": "ok",
			"gemini_configured": bool(config.gemini_api_key),
			"tts_configured": bool(config.tts_api_key),
			"teacher_auth": config.teacher_auth_enabled,
		}

	async def _status_sweeper():
		while True:
			await asyncio.sleep(config.tts_status_sweep_seconds)
			try:
				app.state.tts_registry.sweep()
			except Exception:
				logger.exception("TTS status sweep failed")

	@app.on_event("startup")
	async def startup_event():
		Base.metadata.create_all(bind=engine)
		try:
			ensure_schema(engine)
		except Exception:
			logger.warning("Schema check failed", exc_info=True)
		if app.state.synthesizer is None:
			app.state.synthesizer = TtsClient()
		runner = TtsJobRunner(app.state.synthesizer, app.state.audio_store, app.state.tts_registry)
		app.state.tts_worker = TtsWorker(runner, concurrency=config.tts_worker_concurrency)
		await app.state.tts_worker.start()
		app.state.sweeper = asyncio.create_task(_status_sweeper())

	@app.on_event("shutdown")
	async def shutdown_event():
		app.state.sweeper.cancel()
		await app.state.tts_worker.stop()
		if isinstance(app.state.synthesizer, TtsClient):
			await app.state.synthesizer.aclose()

	return app


app = create_app()
