from __future__ import annotations
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)


class AudioStore:
	"""Filesystem store for synthesized clips, one file per (problem set, sentence number).

	Layout: ``{root}/problem_{id}/sentence_{n}.mp3``. A file that exists is always
	complete: writes go to a temp file in the same directory and are moved into
	place with ``os.replace``.
	"""

	def __init__(self, root: str | os.PathLike) -> None:
		self.root = Path(root)

	def problem_dir(self, problem_set_id: int) -> Path:
		return self.root / f"problem_{int(problem_set_id)}"

	def path_for(self, problem_set_id: int, sentence_number: int) -> Path:
		return self.problem_dir(problem_set_id) / f"sentence_{int(sentence_number)}.mp3"

	def exists(self, problem_set_id: int, sentence_number: int) -> bool:
		return self.path_for(problem_set_id, sentence_number).is_file()

	def read(self, problem_set_id: int, sentence_number: int) -> Optional[bytes]:
		path = self.path_for(problem_set_id, sentence_number)
		try:
			return path.read_bytes()
		except FileNotFoundError:
			return None

	def write(self, problem_set_id: int, sentence_number: int, data: bytes) -> Path:
		target = self.path_for(problem_set_id, sentence_number)
		target.parent.mkdir(parents=True, exist_ok=True)
		fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".part")
		try:
			with os.fdopen(fd, "wb") as fh:
				fh.write(data)
			os.replace(tmp_name, target)
		except BaseException:
			try:
				os.unlink(tmp_name)
			except FileNotFoundError:
				pass
			raise
		return target

	def sentence_numbers(self, problem_set_id: int) -> List[int]:
		folder = self.problem_dir(problem_set_id)
		if not folder.is_dir():
			return []
		numbers: List[int] = []
		for entry in folder.glob("sentence_*.mp3"):
			stem = entry.stem[len("sentence_"):]
			if stem.isdigit():
				numbers.append(int(stem))
		return sorted(numbers)

	def delete_problem_set(self, problem_set_id: int) -> bool:
		"""Remove every clip of a problem set. Returns False when there was nothing to remove."""
		folder = self.problem_dir(problem_set_id)
		if not folder.exists():
			return False
		shutil.rmtree(folder)
		logger.info("Removed audio folder %s", folder)
		return True
