"""
Exam Session Engine

Runs one student's dictation attempt on the delivery side. Everything happens
on a single asyncio event loop: audio playback, the auto-advance countdown and
the student's own actions interleave as callbacks and tasks.

Phase 1 (always):
    PLAYING(i)           sentence i is played `read_count` times
    AWAITING_ADVANCE(i)  countdown of `advance_seconds` races a manual advance
Either the countdown or the student moves on, never both: the first one to
arrive captures the typed text for sentence i and moves to i + 1. When the
clip could not be played there is no countdown; the student replays or moves
on by hand.

Phase 2 (optional, `review_phase=True`):
    REVIEW               no narration; the student moves freely between
                         sentences, replays any of them and submits when ready

Then SUBMITTING -> DONE, or SUBMIT_FAILED from which a retry is allowed, or
SUBMIT_REJECTED when the server refused the attempt (nothing to retry).
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from ..errors import DictationError, TransientSubmissionFailure

logger = logging.getLogger(__name__)


class ExamState(str, enum.Enum):
    IDLE = "idle"
    PLAYING = "playing"
    AWAITING_ADVANCE = "awaiting_advance"
    REVIEW = "review"
    SUBMITTING = "submitting"
    SUBMIT_FAILED = "submit_failed"
    SUBMIT_REJECTED = "submit_rejected"
    DONE = "done"


class PlaybackError(Exception):
    """A clip could not be played (missing, still generating, or player failure)."""


class AudioPlayer(Protocol):
    async def play(self, problem_set_id: int, sentence_number: int) -> None: ...


Submitter = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]


@dataclass
class StudentIdentity:
    """Self-reported; nothing on the student side is authenticated."""

    grade: int
    class_num: int
    student_num: int
    student_name: str


@dataclass
class ExamSentence:
    sentence_number: int
    sentence_text: str = ""


class ExamEngine:
    def __init__(
        self,
        session_id: str,
        problem_set_id: int,
        sentences: List[ExamSentence],
        read_count: int,
        identity: StudentIdentity,
        *,
        player: AudioPlayer,
        submitter: Submitter,
        advance_seconds: float = 5.0,
        repeat_pause: float = 0.8,
        review_phase: bool = False,
    ) -> None:
        self.session_id = session_id
        self.problem_set_id = problem_set_id
        self.sentences = sorted(sentences, key=lambda s: s.sentence_number)
        self.read_count = max(1, int(read_count))
        self.identity = identity
        self.player = player
        self.submitter = submitter
        self.advance_seconds = advance_seconds
        self.repeat_pause = repeat_pause
        self.review_phase = review_phase

        self.state = ExamState.IDLE
        self.phase = 1
        self.index = 0
        self.draft = ""
        self.answers: Dict[int, str] = {}
        self.last_error: Optional[Exception] = None
        self.result: Optional[Dict[str, Any]] = None

        # Guard for the capture-and-advance step shared by the timer and the student
        self._advancing = False
        self._submitting = False
        self._timer: Optional[asyncio.TimerHandle] = None
        self._play_task: Optional[asyncio.Task] = None
        self._submit_task: Optional[asyncio.Task] = None
        self._settled: Optional[asyncio.Event] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], identity: StudentIdentity, **kwargs: Any) -> "ExamEngine":
        """Build an engine from the body of ``GET /api/sessions/{id}``."""
        session = payload["session"]
        sentences = [
            ExamSentence(int(s["sentence_number"]), s.get("sentence_text", ""))
            for s in payload.get("sentences", [])
        ]
        return cls(
            session["id"],
            int(session["problem_set_id"]),
            sentences,
            int(session["read_count"]),
            identity,
            **kwargs,
        )

    @property
    def current_sentence(self) -> Optional[ExamSentence]:
        if 0 <= self.index < len(self.sentences):
            return self.sentences[self.index]
        return None

    # ------------------------------------------------------------------
    # Phase 1: paced playback
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self.state is not ExamState.IDLE:
            return
        self._settled = asyncio.Event()
        if not self.sentences:
            self._schedule_submit()
            return
        self._begin_sentence(0)

    def type_answer(self, text: str) -> None:
        self.draft = text

    def advance(self, index: Optional[int] = None) -> bool:
        """Manual "next": capture the typed text and move on.

        ``index`` is the sentence the student was looking at; when given, an
        advance that arrives after the countdown already moved on is ignored.
        """
        return self._capture_and_advance(self.index if index is None else index)

    def on_timer_expired(self, index: int) -> bool:
        self._timer = None
        return self._capture_and_advance(index)

    def _begin_sentence(self, index: int) -> None:
        self.index = index
        self.draft = ""
        self._advancing = False
        self.state = ExamState.PLAYING
        self._play_task = asyncio.create_task(self._play_then_wait(index))

    async def _play_then_wait(self, index: int) -> None:
        sentence = self.sentences[index]
        played = True
        try:
            for i in range(self.read_count):
                await self.player.play(self.problem_set_id, sentence.sentence_number)
                if i < self.read_count - 1:
                    await asyncio.sleep(self.repeat_pause)
        except asyncio.CancelledError:
            raise
        except Exception as err:
            played = False
            self.last_error = err if isinstance(err, PlaybackError) else PlaybackError(str(err))
            logger.warning("Could not play sentence %s: %s", sentence.sentence_number, err)
        if self.index != index or self._advancing or self.state is not ExamState.PLAYING:
            return
        self.state = ExamState.AWAITING_ADVANCE
        if not played:
            # No countdown: only a replay or the student's own "next" moves on
            return
        self._timer = asyncio.get_running_loop().call_later(self.advance_seconds, self.on_timer_expired, index)

    def _capture_and_advance(self, index: int) -> bool:
        if self._advancing or index != self.index:
            return False
        if self.state not in (ExamState.PLAYING, ExamState.AWAITING_ADVANCE):
            return False
        self._advancing = True
        self._cancel_timer()
        self._cancel_playback()

        sentence = self.sentences[index]
        self.answers[sentence.sentence_number] = self.draft.strip()

        next_index = index + 1
        if next_index < len(self.sentences):
            self._begin_sentence(next_index)
        elif self.review_phase and self.phase == 1:
            self._enter_review()
        else:
            self._schedule_submit()
        return True

    async def replay(self) -> bool:
        """Play the current sentence again.

        In review this plays it once. In phase 1 it restarts the sentence's
        paced playback and countdown without capturing anything.
        """
        sentence = self.current_sentence
        if sentence is None:
            return False
        if self.state is ExamState.REVIEW:
            try:
                await self.player.play(self.problem_set_id, sentence.sentence_number)
            except Exception as err:
                self.last_error = err if isinstance(err, PlaybackError) else PlaybackError(str(err))
                logger.warning("Could not replay sentence %s: %s", sentence.sentence_number, err)
                return False
            return True
        if self.state is ExamState.AWAITING_ADVANCE and not self._advancing:
            self._cancel_timer()
            self.state = ExamState.PLAYING
            self._play_task = asyncio.create_task(self._play_then_wait(self.index))
            return True
        return False

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _cancel_playback(self) -> None:
        task = self._play_task
        self._play_task = None
        if task is not None and not task.done():
            try:
                current = asyncio.current_task()
            except RuntimeError:
                current = None
            if task is not current:
                task.cancel()

    # ------------------------------------------------------------------
    # Phase 2: review
    # ------------------------------------------------------------------

    def _enter_review(self) -> None:
        self.phase = 2
        self.state = ExamState.REVIEW
        self.index = 0
        self.draft = self.answers.get(self.sentences[0].sentence_number, "")
        self._settle()

    def go_to(self, index: int) -> bool:
        """Move to another sentence in review, keeping what was typed on both."""
        if self.state is not ExamState.REVIEW or not 0 <= index < len(self.sentences):
            return False
        self._save_draft()
        self.index = index
        self.draft = self.answers.get(self.sentences[index].sentence_number, "")
        return True

    def next(self) -> bool:
        return self.go_to(self.index + 1)

    def previous(self) -> bool:
        return self.go_to(self.index - 1)

    def _save_draft(self) -> None:
        sentence = self.current_sentence
        if sentence is not None:
            self.answers[sentence.sentence_number] = self.draft.strip()

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(self) -> Optional[Dict[str, Any]]:
        """Finish the review phase, or retry after a failed submission."""
        if self.state is ExamState.REVIEW:
            self._save_draft()
        elif self.state is not ExamState.SUBMIT_FAILED:
            return self.result
        return await self._submit()

    async def retry_submit(self) -> Optional[Dict[str, Any]]:
        if self.state is not ExamState.SUBMIT_FAILED:
            return self.result
        return await self._submit()

    def build_submission(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "grade": self.identity.grade,
            "class_num": self.identity.class_num,
            "student_num": self.identity.student_num,
            "student_name": self.identity.student_name,
            "answers": {s.sentence_number: self.answers.get(s.sentence_number, "") for s in self.sentences},
        }

    def _schedule_submit(self) -> None:
        self._submit_task = asyncio.create_task(self._submit())
        self._submit_task.add_done_callback(self._submit_done)

    def _submit_done(self, task: "asyncio.Task[Optional[Dict[str, Any]]]") -> None:
        if task.cancelled():
            return
        err = task.exception()
        if err is None:
            return
        logger.error("Submission crashed", exc_info=err)
        self.last_error = err
        self.state = ExamState.SUBMIT_FAILED
        self._settle()

    async def _submit(self) -> Optional[Dict[str, Any]]:
        if self._submitting or self.state in (ExamState.DONE, ExamState.SUBMIT_REJECTED):
            return self.result
        self._submitting = True
        self.state = ExamState.SUBMITTING
        try:
            result = await self.submitter(self.build_submission())
        except TransientSubmissionFailure as err:
            self.last_error = err
            self.state = ExamState.SUBMIT_FAILED
            logger.warning("Submission failed, retry is possible: %s", err)
            self._settle()
            return None
        except DictationError as err:
            self.last_error = err
            self.state = ExamState.SUBMIT_REJECTED
            logger.error("Submission rejected: %s", err)
            self._settle()
            return None
        finally:
            self._submitting = False
        self.result = result
        self.state = ExamState.DONE
        self._settle()
        return result

    def _settle(self) -> None:
        if self._settled is not None:
            self._settled.set()

    async def wait_settled(self) -> ExamState:
        """Wait until the attempt needs the student again (review, failed submit) or is over."""
        if self._settled is None:
            self._settled = asyncio.Event()
        await self._settled.wait()
        self._settled.clear()
        return self.state
