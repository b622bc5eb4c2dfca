import asyncio
import json

import httpx
import pytest

from dictation.errors import DownloadFailed, SynthesisFailed, ValidationError
from dictation.tts_client import TtsClient

API_URL = "https://tts.test/synthesize"
CLIP_URL = "https://cdn.test/clip.mp3"


def make_client(handler):
	http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
	return TtsClient("secret", base_url=API_URL, http_client=http), http


def run(client, http, text="오늘은 날씨가 좋다.", voice="시아"):
	async def go():
		try:
			return await client.synthesize(text, voice)
		finally:
			await http.aclose()

	return asyncio.run(go())


def test_synthesize_downloads_audio():
	seen = {}

	def handler(request):
		if request.method == "POST":
			seen["body"] = json.loads(request.content)
			seen["key"] = request.headers.get("X-API-Key")
			return httpx.Response(200, json={"audioUrl": CLIP_URL})
		assert str(request.url) == CLIP_URL
		return httpx.Response(200, content=b"ID3audio")

	client, http = make_client(handler)
	assert run(client, http) == b"ID3audio"
	assert seen["key"] == "secret"
	assert seen["body"]["voiceName"] == "시아"
	assert seen["body"]["mode"] == "preset"
	assert seen["body"]["lang"] == "ko"
	assert seen["body"]["text"] == "오늘은 날씨가 좋다."


def test_snake_case_url_is_accepted():
	def handler(request):
		if request.method == "POST":
			return httpx.Response(200, json={"audio_url": CLIP_URL})
		return httpx.Response(200, content=b"ok")

	client, http = make_client(handler)
	assert run(client, http) == b"ok"


def test_missing_url_is_synthesis_failure():
	client, http = make_client(lambda request: httpx.Response(200, json={"status": "queued"}))
	with pytest.raises(SynthesisFailed):
		run(client, http)


def test_error_body_is_synthesis_failure():
	client, http = make_client(lambda request: httpx.Response(401, json={"error": "invalid key"}))
	with pytest.raises(SynthesisFailed, match="invalid key"):
		run(client, http)


def test_non_json_body_is_synthesis_failure():
	client, http = make_client(lambda request: httpx.Response(502, text="<html>bad gateway</html>"))
	with pytest.raises(SynthesisFailed):
		run(client, http)


def test_network_error_is_synthesis_failure():
	def handler(request):
		raise httpx.ConnectError("connection refused", request=request)

	client, http = make_client(handler)
	with pytest.raises(SynthesisFailed):
		run(client, http)


def test_failed_download():
	def handler(request):
		if request.method == "POST":
			return httpx.Response(200, json={"audioUrl": CLIP_URL})
		return httpx.Response(500)

	client, http = make_client(handler)
	with pytest.raises(DownloadFailed):
		run(client, http)


def test_download_network_error():
	def handler(request):
		if request.method == "POST":
			return httpx.Response(200, json={"audioUrl": CLIP_URL})
		raise httpx.ReadTimeout("timed out", request=request)

	client, http = make_client(handler)
	with pytest.raises(DownloadFailed):
		run(client, http)


@pytest.mark.parametrize("text, voice", [("", "시아"), ("   ", "시아"), ("안녕", "철수")])
def test_invalid_input_rejected_before_any_request(text, voice):
	calls = []

	def handler(request):
		calls.append(request)
		return httpx.Response(200, json={"audioUrl": CLIP_URL})

	client, http = make_client(handler)
	with pytest.raises(ValidationError):
		run(client, http, text=text, voice=voice)
	assert calls == []
