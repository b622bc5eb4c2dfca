from __future__ import annotations
import logging
import httpx
from typing import Any, Dict, Optional, Tuple
from .errors import DownloadFailed, SynthesisFailed, ValidationError
from .settings import settings

logger = logging.getLogger(__name__)

# Preset voices offered by the provider; one is picked per problem set
VOICES: Tuple[str, ...] = ("시아", "효은", "희웅", "선우")


class TtsClient:
	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		base_url: Optional[str] = None,
		http_client: Optional[httpx.AsyncClient] = None,
	) -> None:
		self.api_key = api_key or settings.tts_api_key
		self.base_url = base_url or settings.tts_api_url
		self.language = settings.tts_language
		self.output_format = settings.tts_output_format
		self.emotion = settings.tts_emotion
		self._owns_client = http_client is None
		self._client = http_client or httpx.AsyncClient(timeout=settings.tts_timeout_seconds)

	async def synthesize(self, text: str, voice: str) -> bytes:
		"""Synthesize ``text`` with ``voice`` and return the downloaded audio bytes.

		Two network calls: one asks the provider for an audio URL, the second
		downloads it. Raises SynthesisFailed when no URL comes back and
		DownloadFailed when the download does not complete. Never retries.
		"""
		if not text or not text.strip():
			raise ValidationError("text must not be empty")
		if voice not in VOICES:
			raise ValidationError(f"unknown voice: {voice}")
		audio_url = await self._request_audio_url(text, voice)
		return await self._download(audio_url)

	async def _request_audio_url(self, text: str, voice: str) -> str:
		payload: Dict[str, Any] = {
			"text": text,
			"mode": "preset",
			"voiceName": voice,
			"emotion": self.emotion,
			"lang": self.language,
			"outputFormat": self.output_format,
		}
		headers: Dict[str, str] = {"Content-Type": "application/json"}
		if self.api_key:
			headers["X-API-Key"] = self.api_key
		logger.info("Requesting TTS (voice=%s): %s", voice, text)
		try:
			r = await self._client.post(self.base_url, headers=headers, json=payload)
		except httpx.RequestError as net_err:
			raise SynthesisFailed(f"TTS request failed: {net_err}") from net_err
		try:
			data = r.json()
		except ValueError:
			data = {}
		if not isinstance(data, dict):
			data = {}
		# An error body and a body that merely lacks the URL are the same failure
		audio_url = data.get("audioUrl") or data.get("audio_url")
		if not audio_url:
			reason = data.get("error") or data.get("message") or f"no audio URL (HTTP {r.status_code})"
			logger.error("TTS provider returned no audio URL: %s", reason)
			raise SynthesisFailed(f"TTS synthesis failed: {reason}")
		return str(audio_url)

	async def _download(self, audio_url: str) -> bytes:
		try:
			r = await self._client.get(audio_url)
			r.raise_for_status()
		except httpx.HTTPError as err:
			raise DownloadFailed(f"audio download failed: {err}") from err
		return r.content

	async def aclose(self) -> None:
		if self._owns_client:
			await self._client.aclose()
