"""
Student Session Router

A session is the shareable link a teacher hands out for one problem set. It
binds the problem set to a playback repeat count. Possession of the session id
is the only access control; there is no login on the student side.

Creation is idempotent per problem set: asking again for the same problem set
returns the most recent existing session instead of minting a new one.
"""

from __future__ import annotations
import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import ProblemSet, Sentence, StudentSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


# ============================================================================
# REQUEST/RESPONSE MODELS
# ============================================================================

class CreateSessionRequest(BaseModel):
    """
    Request model for creating (or reusing) a student session.

    Attributes:
        problem_set_id: Problem set the students will take
        read_count: How many times each sentence is played back
    """
    problem_set_id: int
    read_count: int = Field(ge=1, le=10)


def _new_session_id() -> str:
    return secrets.token_urlsafe(16)


# ============================================================================
# API ENDPOINTS
# ============================================================================

@router.post("")
def create_session(req: CreateSessionRequest, db: Session = Depends(get_db)):
    """
    Create a session for a problem set, or reuse the latest existing one.

    Args:
        req: Problem set id and read count
        db: Database session

    Returns:
        Dict with the session id and whether an existing session was reused

    Raises:
        HTTPException: If the problem set does not exist
    """
    if db.get(ProblemSet, req.problem_set_id) is None:
        raise HTTPException(status_code=404, detail="Problem set not found")

    existing = db.execute(
        select(StudentSession)
        .where(StudentSession.problem_set_id == req.problem_set_id)
        .order_by(StudentSession.created_at.desc())
        .limit(1)
    ).scalar_one_or_none()
    if existing is not None:
        logger.info("Reusing session %s for problem set %s", existing.id, req.problem_set_id)
        return {"success": True, "session_id": existing.id, "reused": True}

    row = StudentSession(id=_new_session_id(), problem_set_id=req.problem_set_id, read_count=req.read_count)
    db.add(row)
    db.commit()
    logger.info("Created session %s for problem set %s", row.id, req.problem_set_id)
    return {"success": True, "session_id": row.id, "reused": False}


@router.get("/{session_id}")
def get_session(session_id: str, db: Session = Depends(get_db)):
    """
    Fetch what the delivery client needs to run the exam.

    The ordered sentence texts are included, so the answer key is visible to
    the client. This is an accepted trust assumption of the delivery design.

    Args:
        session_id: Opaque session identifier from the shared link
        db: Database session

    Returns:
        Dict with session metadata (including the problem set title) and sentences

    Raises:
        HTTPException: If the session does not exist
    """
    session = db.get(StudentSession, session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")

    sentences = db.execute(
        select(Sentence)
        .where(Sentence.problem_set_id == session.problem_set_id)
        .order_by(Sentence.sentence_number)
    ).scalars().all()

    return {
        "session": {
            "id": session.id,
            "problem_set_id": session.problem_set_id,
            "read_count": session.read_count,
            "title": session.problem_set.title if session.problem_set else None,
            "created_at": session.created_at.isoformat() if session.created_at else None,
        },
        "sentences": [
            {
                "id": s.id,
                "sentence_number": s.sentence_number,
                "sentence_text": s.sentence_text,
            }
            for s in sentences
        ],
    }
