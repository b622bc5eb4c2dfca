from __future__ import annotations
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from .. import problem_sets
from ..audio_store import AudioStore
from ..db import get_db
from ..deps import get_audio_store, get_tts_worker
from ..gemini_client import GeminiClient
from ..sentence_generator import DEFAULT_GRADE, generate_sentences
from ..tts_jobs import TtsWorker
from .auth import require_teacher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["problem-sets"], dependencies=[Depends(require_teacher)])


class GenerateRequest(BaseModel):
	inputs: str = ""
	additional_requests: str = ""
	count: Optional[int] = Field(default=None, ge=1, le=50)
	grade: int = Field(default=DEFAULT_GRADE, ge=1, le=6)


class SaveRequest(BaseModel):
	title: str = ""
	sentences: List[str] = Field(default_factory=list)


class RenameRequest(BaseModel):
	title: str = ""


class EditSentenceRequest(BaseModel):
	sentence_text: str = ""


def _sentence_out(s) -> dict:
	return {
		"id": s.id,
		"problem_set_id": s.problem_set_id,
		"sentence_number": s.sentence_number,
		"sentence_text": s.sentence_text,
	}


@router.post("/generate")
async def generate(req: GenerateRequest):
	if not req.count:
		raise HTTPException(status_code=400, detail="count is required")
	try:
		client = GeminiClient()
	except ValueError as e:
		raise HTTPException(status_code=503, detail=str(e))
	try:
		sentences = await generate_sentences(client, req.inputs, req.additional_requests, req.count, req.grade)
	except Exception as e:
		logger.exception("Sentence generation failed")
		raise HTTPException(status_code=502, detail=f"sentence generation failed: {e}")
	finally:
		await client.aclose()
	return {"sentences": sentences}


@router.post("/save")
@router.post("/problem-sets")
async def save_problem_set(
	req: SaveRequest,
	db: Session = Depends(get_db),
	worker: TtsWorker = Depends(get_tts_worker),
):
	problem_set = problem_sets.create_problem_set(db, worker, req.title, req.sentences)
	return {"success": True, "id": problem_set.id, "message": "saved; audio is being generated"}


@router.get("/problem-sets")
def list_problem_sets(db: Session = Depends(get_db), store: AudioStore = Depends(get_audio_store)):
	return {"problem_sets": problem_sets.list_problem_sets(db, store)}


@router.get("/problem-sets/{problem_set_id}")
def get_problem_set(problem_set_id: int, db: Session = Depends(get_db)):
	ps = problem_sets.get_problem_set(db, problem_set_id)
	return {
		"id": ps.id,
		"title": ps.title,
		"voice_name": ps.voice_name,
		"created_at": ps.created_at.isoformat() if ps.created_at else None,
		"sentences": [_sentence_out(s) for s in ps.sentences],
	}


@router.patch("/problem-sets/{problem_set_id}")
def rename_problem_set(problem_set_id: int, req: RenameRequest, db: Session = Depends(get_db)):
	problem_sets.rename_problem_set(db, problem_set_id, req.title)
	return {"success": True, "message": "title updated"}


@router.delete("/problem-sets/{problem_set_id}")
def delete_problem_set(
	problem_set_id: int,
	db: Session = Depends(get_db),
	store: AudioStore = Depends(get_audio_store),
	worker: TtsWorker = Depends(get_tts_worker),
):
	problem_sets.delete_problem_set(db, store, problem_set_id, worker)
	return {"success": True, "message": "problem set, submissions and audio deleted"}


@router.patch("/sentences/{sentence_id}")
async def edit_sentence(
	sentence_id: int,
	req: EditSentenceRequest,
	db: Session = Depends(get_db),
	worker: TtsWorker = Depends(get_tts_worker),
):
	sentence = problem_sets.edit_sentence(db, worker, sentence_id, req.sentence_text)
	return {"success": True, "sentence": _sentence_out(sentence), "message": "sentence updated; audio is being regenerated"}
