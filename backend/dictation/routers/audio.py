from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from ..audio_store import AudioStore
from ..deps import get_audio_store

router = APIRouter(prefix="/audio", tags=["audio"])


@router.get("/{problem_set_id}/{sentence_number}")
def get_audio(problem_set_id: int, sentence_number: int, store: AudioStore = Depends(get_audio_store)):
	data = store.read(problem_set_id, sentence_number)
	if data is None:
		# Either never synthesized or the job is still running
		raise HTTPException(status_code=404, detail="Audio not found")
	return Response(content=data, media_type="audio/mpeg")
