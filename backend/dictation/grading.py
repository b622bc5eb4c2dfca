from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Tuple, Union


@dataclass
class Verdict:
	sentence_number: int
	student_answer: str
	correct_answer: str
	is_correct: bool

	def to_dict(self) -> dict:
		return {
			"sentence_number": self.sentence_number,
			"student_answer": self.student_answer,
			"correct_answer": self.correct_answer,
			"is_correct": self.is_correct,
		}


@dataclass
class GradeResult:
	score: int
	total: int
	verdicts: List[Verdict] = field(default_factory=list)


def _lookup(submitted: Mapping[Union[int, str], str], sentence_number: int) -> str:
	# JSON object keys arrive as strings; the delivery client may send ints
	value = submitted.get(sentence_number)
	if value is None:
		value = submitted.get(str(sentence_number))
	return value if isinstance(value, str) else ""


def grade(answer_key: Iterable[Tuple[int, str]], submitted: Mapping[Union[int, str], str]) -> GradeResult:
	"""Exact-match grading of a dictation attempt.

	An answer is correct only if it equals the sentence text once leading and
	trailing whitespace is stripped from both. Case, punctuation and inner
	spacing all count. Unanswered sentences are graded as "".
	"""
	verdicts: List[Verdict] = []
	for sentence_number, text in sorted(answer_key, key=lambda pair: pair[0]):
		student_answer = _lookup(submitted, sentence_number)
		verdicts.append(
			Verdict(
				sentence_number=sentence_number,
				student_answer=student_answer,
				correct_answer=text,
				is_correct=student_answer.strip() == text.strip(),
			)
		)
	score = sum(1 for v in verdicts if v.is_correct)
	return GradeResult(score=score, total=len(verdicts), verdicts=verdicts)
