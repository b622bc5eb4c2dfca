"""Error types shared by the API, the background TTS jobs and the delivery client."""

from __future__ import annotations


class DictationError(Exception):
	"""Base class for all domain errors."""

	status_code: int = 500

	def __init__(self, detail: str) -> None:
		super().__init__(detail)
		self.detail = detail


class ValidationError(DictationError):
	"""Missing or malformed input; the request is rejected without side effects."""

	status_code = 400


class NotFound(DictationError):
	status_code = 404


class TtsError(DictationError):
	"""Raised by the synthesis client. Only ever observed inside background jobs."""

	status_code = 502


class SynthesisFailed(TtsError):
	pass


class DownloadFailed(TtsError):
	pass


class TransientSubmissionFailure(DictationError):
	"""Submitting answers failed in transit; nothing was recorded, so a retry is safe."""

	status_code = 503
