from fastapi import Request

from .audio_store import AudioStore
from .tts_jobs import TtsWorker
from .tts_status import TtsStatusRegistry


# Components are built once in create_app() and hung off app.state
def get_audio_store(request: Request) -> AudioStore:
	return request.app.state.audio_store


def get_tts_registry(request: Request) -> TtsStatusRegistry:
	return request.app.state.tts_registry


def get_tts_worker(request: Request) -> TtsWorker:
	return request.app.state.tts_worker
