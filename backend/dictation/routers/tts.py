from fastapi import APIRouter, Depends

from ..deps import get_tts_registry
from ..tts_status import TtsStatusRegistry

router = APIRouter(prefix="/api/tts-status", tags=["tts"])


@router.get("")
def all_statuses(registry: TtsStatusRegistry = Depends(get_tts_registry)):
	# Only jobs still in flight or recently finished; absent ids are ambiguous
	return {"statuses": {str(ps_id): job.to_dict() for ps_id, job in registry.get_all().items()}}


@router.get("/{problem_set_id}")
def one_status(problem_set_id: int, registry: TtsStatusRegistry = Depends(get_tts_registry)):
	job = registry.get(problem_set_id)
	return {"status": job.to_dict() if job is not None else None}
