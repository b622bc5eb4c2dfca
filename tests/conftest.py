import asyncio
import time

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dictation import models  # noqa: F401  (registers tables on Base)
from dictation.audio_store import AudioStore
from dictation.db import Base, get_db
from dictation.errors import SynthesisFailed
from dictation.main import create_app
from dictation.tts_status import TtsStatusRegistry


class FakeSynthesizer:
	"""Returns deterministic bytes; fails for any text containing one of ``fail_on``.

	``delay`` makes each call take that many seconds, to catch jobs mid-flight.
	"""

	def __init__(self, fail_on=(), delay=0.0):
		self.calls = []
		self.fail_on = set(fail_on)
		self.delay = delay

	async def synthesize(self, text, voice):
		self.calls.append((text, voice))
		if self.delay:
			await asyncio.sleep(self.delay)
		if any(marker in text for marker in self.fail_on):
			raise SynthesisFailed("TTS synthesis failed: no audio URL")
		return f"{voice}|{text}".encode("utf-8")


@pytest.fixture(autouse=True)
def _no_teacher_login(monkeypatch):
	# Environment-provided credentials would otherwise lock the teacher routes
	from dictation.settings import settings

	monkeypatch.setattr(settings, "seed_username", None)
	monkeypatch.setattr(settings, "seed_password_plain", None)


@pytest.fixture
def db_engine():
	engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
	Base.metadata.create_all(engine)
	yield engine
	engine.dispose()


@pytest.fixture
def session_factory(db_engine):
	return sessionmaker(bind=db_engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
	session = session_factory()
	try:
		yield session
	finally:
		session.close()


@pytest.fixture
def audio_store(tmp_path):
	return AudioStore(tmp_path / "audio")


@pytest.fixture
def synthesizer():
	return FakeSynthesizer()


@pytest.fixture
def registry():
	return TtsStatusRegistry(retention_seconds=300)


@pytest.fixture
def app(db_engine, session_factory, audio_store, synthesizer, registry):
	app = create_app(engine=db_engine, synthesizer=synthesizer, audio_store=audio_store, registry=registry)

	def _get_db():
		session = session_factory()
		try:
			yield session
		finally:
			session.close()

	app.dependency_overrides[get_db] = _get_db
	return app


@pytest.fixture
def client(app):
	with TestClient(app) as c:
		yield c


def wait_for_tts(client, problem_set_id, timeout=5.0):
	"""Poll the status endpoint until the job leaves the generating state."""
	deadline = time.monotonic() + timeout
	status = None
	while time.monotonic() < deadline:
		status = client.get(f"/api/tts-status/{problem_set_id}").json()["status"]
		if status is not None and status["status"] != "generating":
			return status
		time.sleep(0.02)
	raise AssertionError(f"TTS job for {problem_set_id} did not finish: {status}")


def save_problem_set(client, title="받아쓰기 1", sentences=None):
	sentences = sentences or ["오늘은 날씨가 좋다.", "나는 학교에 간다.", "친구와 함께 놀았다."]
	r = client.post("/api/save", json={"title": title, "sentences": sentences})
	assert r.status_code == 200, r.text
	return r.json()["id"]
