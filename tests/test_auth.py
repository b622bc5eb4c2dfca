import pytest

from dictation.routers import auth
from dictation.settings import settings


@pytest.fixture
def teacher_login(monkeypatch):
	monkeypatch.setattr(settings, "seed_username", "teacher")
	monkeypatch.setattr(settings, "seed_password_plain", "s3cret")
	monkeypatch.setattr(auth, "_teachers", {})


def test_routes_open_when_no_account_configured(client, monkeypatch):
	monkeypatch.setattr(settings, "seed_username", None)
	assert client.get("/api/problem-sets").status_code == 200
	assert client.get("/auth/me").json() is None


def test_teacher_routes_require_token(client, teacher_login):
	assert client.get("/api/problem-sets").status_code == 401
	assert client.post("/api/save", json={"title": "t", "sentences": ["가"]}).status_code == 401
	# student-facing routes stay open
	assert client.get("/api/tts-status").status_code == 200
	assert client.get("/api/sessions/missing").status_code == 404


def test_login_and_use_token(client, teacher_login):
	bad = client.post("/auth/token", data={"username": "teacher", "password": "wrong"})
	assert bad.status_code == 401

	r = client.post("/auth/token", data={"username": "teacher", "password": "s3cret"})
	assert r.status_code == 200
	token = r.json()["access_token"]
	headers = {"Authorization": f"Bearer {token}"}
	assert client.get("/api/problem-sets", headers=headers).status_code == 200
	assert client.get("/auth/me", headers=headers).json() == {"username": "teacher"}


def test_token_for_other_user_is_rejected(client, teacher_login):
	token = auth.create_access_token({"sub": "someone-else"})
	r = client.get("/api/problem-sets", headers={"Authorization": f"Bearer {token}"})
	assert r.status_code == 401
	r = client.get("/api/problem-sets", headers={"Authorization": "Bearer garbage"})
	assert r.status_code == 401
