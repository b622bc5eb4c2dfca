from __future__ import annotations
import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db import get_db
from ..grading import grade
from ..models import Answer, Sentence, StudentSession, Submission

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["submissions"])


class SubmitRequest(BaseModel):
	session_id: str
	grade: int = Field(ge=1)
	class_num: int = Field(ge=1)
	student_num: int = Field(ge=1)
	student_name: str = Field(min_length=1)
	# sentence_number -> typed text
	answers: Dict[int, str]


def _submission_out(sub: Submission) -> dict:
	return {
		"submission_id": sub.id,
		"session_id": sub.session_id,
		"grade": sub.grade,
		"class_num": sub.class_num,
		"student_num": sub.student_num,
		"student_name": sub.student_name,
		"score": sub.score,
		"total": sub.total,
		"submitted_at": sub.submitted_at.isoformat() if sub.submitted_at else None,
	}


def _answers_out(db: Session, sub: Submission, problem_set_id: int) -> list:
	current = dict(
		db.execute(
			select(Sentence.sentence_number, Sentence.sentence_text).where(Sentence.problem_set_id == problem_set_id)
		).all()
	)
	return [
		{
			"sentence_number": a.sentence_number,
			"student_answer": a.student_answer,
			# Snapshot taken at grading time; rows from older databases fall back to the live text
			"correct_answer": a.correct_answer if a.correct_answer is not None else current.get(a.sentence_number),
			"is_correct": bool(a.is_correct),
		}
		for a in sub.answers
	]


@router.post("/submissions")
def submit_answers(req: SubmitRequest, db: Session = Depends(get_db)):
	if not req.student_name.strip():
		raise HTTPException(status_code=400, detail="student_name is required")
	session = db.get(StudentSession, req.session_id)
	if session is None:
		raise HTTPException(status_code=404, detail="Session not found")

	answer_key = db.execute(
		select(Sentence.sentence_number, Sentence.sentence_text)
		.where(Sentence.problem_set_id == session.problem_set_id)
		.order_by(Sentence.sentence_number)
	).all()
	result = grade([(n, t) for n, t in answer_key], req.answers)

	# Submission and its answers are recorded together or not at all
	try:
		sub = Submission(
			session_id=session.id,
			grade=req.grade,
			class_num=req.class_num,
			student_num=req.student_num,
			student_name=req.student_name.strip(),
			score=result.score,
			total=result.total,
		)
		db.add(sub)
		db.flush()
		for v in result.verdicts:
			db.add(
				Answer(
					submission_id=sub.id,
					sentence_number=v.sentence_number,
					student_answer=v.student_answer,
					is_correct=v.is_correct,
					correct_answer=v.correct_answer,
				)
			)
		db.commit()
	except Exception:
		db.rollback()
		raise
	logger.info("Submission %s for session %s graded %d/%d", sub.id, session.id, result.score, result.total)
	return {
		"success": True,
		"submission_id": sub.id,
		"score": result.score,
		"total": result.total,
		"answers": [v.to_dict() for v in result.verdicts],
	}


@router.get("/submissions/detail/{submission_id}")
def submission_detail(submission_id: int, db: Session = Depends(get_db)):
	sub = db.get(Submission, submission_id)
	if sub is None:
		raise HTTPException(status_code=404, detail="Submission not found")
	return {"submission": _submission_out(sub), "answers": _answers_out(db, sub, sub.session.problem_set_id)}


@router.get("/submissions/{problem_set_id}")
def list_submissions(problem_set_id: int, db: Session = Depends(get_db)):
	rows = db.execute(
		select(Submission)
		.join(StudentSession, Submission.session_id == StudentSession.id)
		.where(StudentSession.problem_set_id == problem_set_id)
		.order_by(Submission.submitted_at.desc(), Submission.id.desc())
	).scalars().all()
	return {"submissions": [_submission_out(s) for s in rows]}


@router.get("/my-result")
def my_result(
	grade: Optional[int] = None,
	class_num: Optional[int] = None,
	student_num: Optional[int] = None,
	session_id: Optional[str] = None,
	db: Session = Depends(get_db),
):
	if not grade or not class_num or not student_num:
		raise HTTPException(status_code=400, detail="grade, class_num and student_num are required")

	identity = (
		Submission.grade == grade,
		Submission.class_num == class_num,
		Submission.student_num == student_num,
	)
	sub: Optional[Submission] = None
	if session_id:
		sub = db.execute(
			select(Submission)
			.where(Submission.session_id == session_id, *identity)
			.order_by(Submission.submitted_at.desc(), Submission.id.desc())
			.limit(1)
		).scalar_one_or_none()
	if sub is None:
		# Most recent attempt under this identity across all sessions
		sub = db.execute(
			select(Submission)
			.where(*identity)
			.order_by(Submission.submitted_at.desc(), Submission.id.desc())
			.limit(1)
		).scalar_one_or_none()
	if sub is None:
		raise HTTPException(status_code=404, detail="No result found for this student")

	return {
		"success": True,
		"submission": {
			"score": sub.score,
			"total": sub.total,
			"submitted_at": sub.submitted_at.isoformat() if sub.submitted_at else None,
			"student_name": sub.student_name,
		},
		"answers": _answers_out(db, sub, sub.session.problem_set_id),
	}


@router.get("/my-result/{session_id}")
def my_result_for_session(
	session_id: str,
	grade: Optional[int] = None,
	class_num: Optional[int] = None,
	student_num: Optional[int] = None,
	db: Session = Depends(get_db),
):
	return my_result(grade=grade, class_num=class_num, student_num=student_num, session_id=session_id, db=db)
