from __future__ import annotations
import logging
import random
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from .audio_store import AudioStore
from .errors import NotFound, ValidationError
from .models import Answer, ProblemSet, Sentence, StudentSession, Submission
from .tts_client import VOICES
from .tts_jobs import SentenceAudio, TtsWorker

logger = logging.getLogger(__name__)


def pick_voice() -> str:
	return random.choice(VOICES)


def create_problem_set(db: Session, worker: TtsWorker, title: str, sentences: Sequence[str]) -> ProblemSet:
	"""Store a new problem set with its sentences, then queue audio synthesis for all of them."""
	title = (title or "").strip()
	texts = [str(s).strip() for s in (sentences or [])]
	if not title or not texts:
		raise ValidationError("title and sentences are required")
	if any(not t for t in texts):
		raise ValidationError("sentences must not be blank")

	voice = pick_voice()
	problem_set = ProblemSet(title=title, voice_name=voice)
	try:
		db.add(problem_set)
		db.flush()
		for number, text in enumerate(texts, start=1):
			db.add(Sentence(problem_set_id=problem_set.id, sentence_number=number, sentence_text=text))
		db.commit()
	except Exception:
		db.rollback()
		raise
	db.refresh(problem_set)

	worker.submit(
		problem_set.id,
		voice,
		[SentenceAudio(number, text) for number, text in enumerate(texts, start=1)],
	)
	logger.info("Problem set %s saved with %d sentences (voice=%s)", problem_set.id, len(texts), voice)
	return problem_set


def get_problem_set(db: Session, problem_set_id: int) -> ProblemSet:
	problem_set = db.get(ProblemSet, problem_set_id)
	if problem_set is None:
		raise NotFound("problem set not found")
	return problem_set


def list_problem_sets(db: Session, store: AudioStore) -> List[Dict[str, Any]]:
	rows = db.execute(
		select(ProblemSet.id, ProblemSet.title, ProblemSet.created_at, func.count(Sentence.id))
		.outerjoin(Sentence, Sentence.problem_set_id == ProblemSet.id)
		.group_by(ProblemSet.id)
		.order_by(ProblemSet.created_at.desc(), ProblemSet.id.desc())
	).all()
	return [
		{
			"id": ps_id,
			"title": title,
			"created_at": created_at.isoformat() if created_at else None,
			"sentence_count": count,
			# The first clip existing is treated as "audio ready"
			"has_audio": store.exists(ps_id, 1),
		}
		for ps_id, title, created_at, count in rows
	]


def rename_problem_set(db: Session, problem_set_id: int, title: str) -> ProblemSet:
	title = (title or "").strip()
	if not title:
		raise ValidationError("title is required")
	problem_set = get_problem_set(db, problem_set_id)
	problem_set.title = title
	db.commit()
	return problem_set


def edit_sentence(db: Session, worker: TtsWorker, sentence_id: int, text: str) -> Sentence:
	"""Replace one sentence's text and queue resynthesis of that sentence's clip only."""
	text = (text or "").strip()
	if not text:
		raise ValidationError("sentence text is required")
	sentence = db.get(Sentence, sentence_id)
	if sentence is None:
		raise NotFound("sentence not found")
	problem_set = db.get(ProblemSet, sentence.problem_set_id)
	if problem_set is None or not problem_set.voice_name:
		raise NotFound("problem set not found")

	sentence.sentence_text = text
	db.commit()

	worker.submit(problem_set.id, problem_set.voice_name, [SentenceAudio(sentence.sentence_number, text)])
	logger.info("Sentence %s of problem set %s edited; resynthesizing", sentence.sentence_number, problem_set.id)
	return sentence


def delete_problem_set(db: Session, store: AudioStore, problem_set_id: int, worker: Optional[TtsWorker] = None) -> None:
	"""Delete a problem set together with everything hanging off it.

	Rows go in dependency order (answers, submissions, sessions, sentences, the
	set itself) in one transaction. After the commit any TTS job of the set is
	cancelled, then the audio is removed; if that fails the orphaned files are
	only logged.
	"""
	try:
		session_ids = select(StudentSession.id).where(StudentSession.problem_set_id == problem_set_id)
		submission_ids = select(Submission.id).where(Submission.session_id.in_(session_ids))
		db.execute(delete(Answer).where(Answer.submission_id.in_(submission_ids)))
		db.execute(delete(Submission).where(Submission.session_id.in_(session_ids)))
		db.execute(delete(StudentSession).where(StudentSession.problem_set_id == problem_set_id))
		db.execute(delete(Sentence).where(Sentence.problem_set_id == problem_set_id))
		res = db.execute(delete(ProblemSet).where(ProblemSet.id == problem_set_id))
		if not res.rowcount:
			db.rollback()
			raise NotFound("problem set not found")
		db.commit()
	except NotFound:
		raise
	except Exception:
		db.rollback()
		raise

	if worker is not None:
		worker.cancel(problem_set_id)

	try:
		store.delete_problem_set(problem_set_id)
	except OSError:
		logger.warning("Could not remove audio for deleted problem set %s", problem_set_id, exc_info=True)
