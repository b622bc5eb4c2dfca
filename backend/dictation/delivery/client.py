from __future__ import annotations
import httpx
from typing import Any, Dict, Optional

from ..errors import NotFound, TransientSubmissionFailure, ValidationError


class DictationApiClient:
    """HTTP client used by the delivery side: session payload, clips and submission."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = http_client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)

    async def fetch_session(self, session_id: str) -> Dict[str, Any]:
        r = await self._client.get(f"/api/sessions/{session_id}")
        if r.status_code == 404:
            raise NotFound("session not found")
        r.raise_for_status()
        return r.json()

    async def fetch_audio(self, problem_set_id: int, sentence_number: int) -> Optional[bytes]:
        """Clip bytes, or None when the clip does not exist (yet)."""
        r = await self._client.get(f"/audio/{problem_set_id}/{sentence_number}")
        if r.status_code == 404:
            return None
        r.raise_for_status()
        return r.content

    async def submit(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Send answers for grading.

        Transport errors and 5xx responses raise TransientSubmissionFailure:
        the server records a submission only when its transaction commits, so
        sending again is safe. Rejections (4xx) are not retryable.
        """
        try:
            # JSON object keys must be strings
            body = dict(payload, answers={str(k): v for k, v in payload.get("answers", {}).items()})
            r = await self._client.post("/api/submissions", json=body)
        except httpx.TransportError as err:
            raise TransientSubmissionFailure(f"could not reach server: {err}") from err
        if r.status_code >= 500:
            raise TransientSubmissionFailure(f"server error {r.status_code}")
        if r.status_code == 404:
            raise NotFound(_detail(r) or "session not found")
        if r.status_code >= 400:
            raise ValidationError(_detail(r) or f"submission rejected ({r.status_code})")
        return r.json()

    async def aclose(self) -> None:
        await self._client.aclose()


def _detail(r: httpx.Response) -> Optional[str]:
    try:
        data = r.json()
    except ValueError:
        return None
    if isinstance(data, dict) and isinstance(data.get("detail"), str):
        return data["detail"]
    return None
