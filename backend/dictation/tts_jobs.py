"""
Background audio synthesis for problem sets.

``TtsJobRunner`` turns one problem set's sentences into clips, strictly one at a
time, and reports progress to the status registry. ``TtsWorker`` is the queue
request handlers push jobs onto; a small pool of consumer tasks drains it so
different problem sets can be processed side by side. Jobs of the same set
run one after another in submission order.
"""

from __future__ import annotations
import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, NamedTuple, Optional, Protocol, Sequence

from .audio_store import AudioStore
from .tts_status import TtsStatusRegistry

logger = logging.getLogger(__name__)

_KOREAN_DIGITS = ["일", "이", "삼", "사", "오", "육", "칠", "팔", "구", "십"]


def korean_ordinal(num: int) -> str:
	"""Spoken item announcement, e.g. 3 -> "삼 번. ", 21 -> "이십일 번. "."""
	if 1 <= num <= 10:
		spoken = _KOREAN_DIGITS[num - 1]
	elif 11 <= num <= 99:
		tens, ones = divmod(num, 10)
		spoken = "십" if tens == 1 else _KOREAN_DIGITS[tens - 1] + "십"
		if ones:
			spoken += _KOREAN_DIGITS[ones - 1]
	else:
		spoken = str(num)
	return spoken + " 번. "


def narration_text(sentence_number: int, text: str) -> str:
	return f"{korean_ordinal(sentence_number)} {text}"


class SentenceAudio(NamedTuple):
	sentence_number: int
	text: str


class Synthesizer(Protocol):
	async def synthesize(self, text: str, voice: str) -> bytes: ...


class TtsJobRunner:
	def __init__(self, synthesizer: Synthesizer, store: AudioStore, registry: TtsStatusRegistry) -> None:
		self.synthesizer = synthesizer
		self.store = store
		self.registry = registry
		# Bumped when a problem set is deleted; jobs from an older generation stop writing
		self._generations: Dict[int, int] = {}
		self._write_lock = threading.Lock()

	def generation(self, problem_set_id: int) -> int:
		with self._write_lock:
			return self._generations.get(int(problem_set_id), 0)

	def cancel(self, problem_set_id: int) -> None:
		"""Stop every queued or running job of a problem set before its next write.

		Once this returns no further clip of the set is written, so removing the
		set's audio afterwards leaves nothing behind.
		"""
		key = int(problem_set_id)
		with self._write_lock:
			self._generations[key] = self._generations.get(key, 0) + 1

	def _cancelled(self, problem_set_id: int, generation: int) -> bool:
		return self._generations.get(int(problem_set_id), 0) != generation

	async def run(
		self,
		problem_set_id: int,
		voice: str,
		sentences: Iterable[SentenceAudio],
		generation: Optional[int] = None,
	) -> bool:
		"""Synthesize every sentence in ascending number order.

		The registry entry must already exist (``TtsWorker.submit`` creates it).
		Stops at the first failure and marks the job as errored; clips written
		before the failure are left in place. A cancelled job stops quietly.
		Returns True when every clip was written.
		"""
		if generation is None:
			generation = self.generation(problem_set_id)
		ordered = sorted(sentences, key=lambda s: s.sentence_number)
		logger.info("TTS job for problem set %s started (voice=%s, %d sentences)", problem_set_id, voice, len(ordered))
		for item in ordered:
			try:
				if self.generation(problem_set_id) != generation:
					logger.info("TTS job for problem set %s cancelled", problem_set_id)
					return False
				audio = await self.synthesizer.synthesize(narration_text(item.sentence_number, item.text), voice)
				with self._write_lock:
					if self._cancelled(problem_set_id, generation):
						logger.info("TTS job for problem set %s cancelled", problem_set_id)
						return False
					self.store.write(problem_set_id, item.sentence_number, audio)
			except Exception:
				if self.generation(problem_set_id) != generation:
					logger.info("TTS job for problem set %s cancelled", problem_set_id)
					return False
				logger.exception(
					"TTS job for problem set %s failed at sentence %s", problem_set_id, item.sentence_number
				)
				self.registry.mark_error(problem_set_id)
				return False
			self.registry.advance(problem_set_id)
			logger.info("Problem set %s sentence %s synthesized", problem_set_id, item.sentence_number)
		logger.info("TTS job for problem set %s finished", problem_set_id)
		return True


@dataclass
class TtsJobRequest:
	problem_set_id: int
	voice: str
	sentences: List[SentenceAudio]
	generation: int = 0


class TtsWorker:
	def __init__(self, runner: TtsJobRunner, *, concurrency: int = 2) -> None:
		self.runner = runner
		self.concurrency = max(1, concurrency)
		self._queue: Optional[asyncio.Queue] = None
		self._loop: Optional[asyncio.AbstractEventLoop] = None
		self._tasks: List[asyncio.Task] = []
		# One job at a time per problem set, so a later edit is never overwritten by an earlier job
		self._set_locks: Dict[int, asyncio.Lock] = {}
		self._set_users: Dict[int, int] = {}

	@property
	def registry(self) -> TtsStatusRegistry:
		return self.runner.registry

	@property
	def running(self) -> bool:
		return bool(self._tasks)

	async def start(self) -> None:
		if self._tasks:
			return
		self._loop = asyncio.get_running_loop()
		self._queue = asyncio.Queue()
		self._tasks = [asyncio.create_task(self._consume(i)) for i in range(self.concurrency)]

	async def stop(self) -> None:
		for task in self._tasks:
			task.cancel()
		await asyncio.gather(*self._tasks, return_exceptions=True)
		self._tasks = []

	def submit(self, problem_set_id: int, voice: str, sentences: Sequence[SentenceAudio]) -> TtsJobRequest:
		"""Register the job with the status registry and enqueue it. Never blocks.

		Safe to call from request handlers running in the threadpool.
		"""
		if self._loop is None or self._queue is None:
			raise RuntimeError("TTS worker is not running")
		request = TtsJobRequest(
			problem_set_id=int(problem_set_id),
			voice=voice,
			sentences=sorted(sentences, key=lambda s: s.sentence_number),
			generation=self.runner.generation(problem_set_id),
		)
		self.registry.begin(request.problem_set_id, len(request.sentences))
		self._loop.call_soon_threadsafe(self._queue.put_nowait, request)
		return request

	def cancel(self, problem_set_id: int) -> None:
		"""Drop a deleted problem set: its jobs stop writing and its status disappears."""
		self.runner.cancel(problem_set_id)
		self.registry.discard(problem_set_id)

	async def join(self) -> None:
		"""Wait until every job enqueued so far has been processed."""
		if self._queue is None:
			return
		# Let pending call_soon_threadsafe puts land first
		await asyncio.sleep(0)
		await self._queue.join()

	async def _consume(self, slot: int) -> None:
		assert self._queue is not None
		while True:
			request = await self._queue.get()
			key = request.problem_set_id
			lock = self._set_locks.setdefault(key, asyncio.Lock())
			self._set_users[key] = self._set_users.get(key, 0) + 1
			try:
				async with lock:
					await self.runner.run(key, request.voice, request.sentences, request.generation)
			except Exception:
				logger.exception("TTS worker %d crashed on problem set %s", slot, key)
				self.registry.mark_error(key)
			finally:
				self._set_users[key] -= 1
				if not self._set_users[key]:
					del self._set_users[key]
					del self._set_locks[key]
				self._queue.task_done()
