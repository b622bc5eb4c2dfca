from __future__ import annotations
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Text, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from .db import Base


class ProblemSet(Base):
	__tablename__ = "problem_sets"
	id = Column(Integer, primary_key=True, autoincrement=True)
	title = Column(String(256), nullable=False)
	# Picked once at creation; every clip of the set uses the same voice
	voice_name = Column(String(32), nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

	sentences = relationship("Sentence", back_populates="problem_set", order_by="Sentence.sentence_number")


class Sentence(Base):
	__tablename__ = "sentences"
	__table_args__ = (UniqueConstraint("problem_set_id", "sentence_number", name="uq_sentence_number"),)
	id = Column(Integer, primary_key=True, autoincrement=True)
	problem_set_id = Column(Integer, ForeignKey("problem_sets.id"), nullable=False, index=True)
	# 1-based; keys audio assets and answer maps, never renumbered
	sentence_number = Column(Integer, nullable=False)
	sentence_text = Column(Text, nullable=False)

	problem_set = relationship("ProblemSet", back_populates="sentences")


class StudentSession(Base):
	__tablename__ = "student_sessions"
	id = Column(String(64), primary_key=True)
	problem_set_id = Column(Integer, ForeignKey("problem_sets.id"), nullable=False, index=True)
	read_count = Column(Integer, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

	problem_set = relationship("ProblemSet")


class Submission(Base):
	__tablename__ = "student_submissions"
	id = Column(Integer, primary_key=True, autoincrement=True)
	session_id = Column(String(64), ForeignKey("student_sessions.id"), nullable=False, index=True)
	grade = Column(Integer, nullable=False)
	class_num = Column(Integer, nullable=False)
	student_num = Column(Integer, nullable=False)
	student_name = Column(String(128), nullable=False)
	score = Column(Integer, nullable=True)
	total = Column(Integer, nullable=True)
	submitted_at = Column(DateTime, default=datetime.utcnow, nullable=False)

	session = relationship("StudentSession")
	answers = relationship("Answer", back_populates="submission", order_by="Answer.sentence_number")


class Answer(Base):
	__tablename__ = "student_answers"
	id = Column(Integer, primary_key=True, autoincrement=True)
	submission_id = Column(Integer, ForeignKey("student_submissions.id"), nullable=False, index=True)
	sentence_number = Column(Integer, nullable=False)
	student_answer = Column(Text, nullable=True)
	# Frozen at submission time; never recomputed after sentence edits
	is_correct = Column(Boolean, nullable=False)
	correct_answer = Column(Text, nullable=True)

	submission = relationship("Submission", back_populates="answers")
