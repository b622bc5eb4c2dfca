"""
In-memory progress ledger for background TTS jobs.

One entry per problem set: ``{status, current, total}``. Entries that reach a
terminal state (complete or error) stay readable for a retention window, then
get evicted. Nothing here survives a restart; a missing entry means either
"never started" or "finished and aged out", and callers that need the truth
check the audio store instead.
"""

from __future__ import annotations
import logging
import threading
import time
from dataclasses import dataclass, asdict
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

GENERATING = "generating"
COMPLETE = "complete"
ERROR = "error"


@dataclass
class TtsJob:
	status: str
	current: int
	total: int
	finished_at: Optional[float] = None

	@property
	def terminal(self) -> bool:
		return self.status in (COMPLETE, ERROR)

	def to_dict(self) -> Dict[str, object]:
		data = asdict(self)
		data.pop("finished_at", None)
		return data


class TtsStatusRegistry:
	def __init__(self, *, retention_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic) -> None:
		self.retention_seconds = retention_seconds
		self._clock = clock
		self._jobs: Dict[int, TtsJob] = {}
		self._lock = threading.Lock()

	def begin(self, problem_set_id: int, total: int) -> TtsJob:
		if total < 0:
			raise ValueError("total must be >= 0")
		key = int(problem_set_id)
		with self._lock:
			job = self._jobs.get(key)
			if job is not None and job.status == GENERATING:
				# Another job for the same set is still running; widen its total
				job.total += total
			else:
				job = TtsJob(status=GENERATING, current=0, total=total)
				self._jobs[key] = job
			self._maybe_complete(job)
			return TtsJob(**asdict(job))

	def advance(self, problem_set_id: int) -> Optional[TtsJob]:
		key = int(problem_set_id)
		with self._lock:
			job = self._jobs.get(key)
			if job is None:
				return None
			if job.current < job.total:
				job.current += 1
			self._maybe_complete(job)
			return TtsJob(**asdict(job))

	def mark_error(self, problem_set_id: int) -> None:
		key = int(problem_set_id)
		with self._lock:
			job = self._jobs.get(key)
			if job is None:
				job = TtsJob(status=ERROR, current=0, total=0)
				self._jobs[key] = job
			job.status = ERROR
			job.finished_at = self._clock()

	def mark_complete(self, problem_set_id: int) -> None:
		key = int(problem_set_id)
		with self._lock:
			job = self._jobs.get(key)
			if job is None or job.status == ERROR:
				return
			job.current = job.total
			job.status = COMPLETE
			job.finished_at = self._clock()

	def get(self, problem_set_id: int) -> Optional[TtsJob]:
		key = int(problem_set_id)
		with self._lock:
			self._evict_expired()
			job = self._jobs.get(key)
			return TtsJob(**asdict(job)) if job is not None else None

	def get_all(self) -> Dict[int, TtsJob]:
		with self._lock:
			self._evict_expired()
			return {key: TtsJob(**asdict(job)) for key, job in self._jobs.items()}

	def discard(self, problem_set_id: int) -> None:
		with self._lock:
			self._jobs.pop(int(problem_set_id), None)

	def sweep(self) -> int:
		with self._lock:
			return self._evict_expired()

	def _maybe_complete(self, job: TtsJob) -> None:
		if job.status == GENERATING and job.current >= job.total:
			job.status = COMPLETE
			job.finished_at = self._clock()

	def _evict_expired(self) -> int:
		now = self._clock()
		expired = [
			key
			for key, job in self._jobs.items()
			if job.terminal and job.finished_at is not None and now - job.finished_at >= self.retention_seconds
		]
		for key in expired:
			del self._jobs[key]
		if expired:
			logger.debug("Evicted TTS statuses for problem sets %s", expired)
		return len(expired)
