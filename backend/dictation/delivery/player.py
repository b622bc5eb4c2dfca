from __future__ import annotations
import asyncio
import logging
import os
import shlex
import tempfile
from typing import List

import httpx

from .client import DictationApiClient
from .engine import PlaybackError

logger = logging.getLogger(__name__)


def build_command(template: str, path: str, speed: float) -> List[str]:
    """Expand a player command template.

    ``{path}`` and ``{speed}`` are substituted; a template without ``{path}``
    gets the file path appended.
    """
    args = [part.format(path=path, speed=speed) for part in shlex.split(template)]
    if "{path}" not in template:
        args.append(path)
    return args


class CommandAudioPlayer:
    """Fetches a clip from the API and plays it with an external command (ffplay by default)."""

    def __init__(self, client: DictationApiClient, command: str, *, speed: float = 1.0) -> None:
        self.client = client
        self.command = command
        self.speed = speed

    async def play(self, problem_set_id: int, sentence_number: int) -> None:
        try:
            audio = await self.client.fetch_audio(problem_set_id, sentence_number)
        except httpx.HTTPError as err:
            raise PlaybackError(f"could not fetch audio: {err}") from err
        if audio is None:
            raise PlaybackError("audio is not available yet; it may still be generating")

        fd, path = tempfile.mkstemp(suffix=".mp3")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(audio)
            args = build_command(self.command, path, self.speed)
            try:
                proc = await asyncio.create_subprocess_exec(
                    *args, stdout=asyncio.subprocess.DEVNULL, stderr=asyncio.subprocess.DEVNULL
                )
            except OSError as err:
                raise PlaybackError(f"could not start player: {err}") from err
            try:
                returncode = await proc.wait()
            except asyncio.CancelledError:
                # Student moved on mid-clip
                proc.kill()
                await proc.wait()
                raise
            if returncode != 0:
                raise PlaybackError(f"player exited with status {returncode}")
        finally:
            try:
                os.unlink(path)
            except FileNotFoundError:
                pass
