from __future__ import annotations
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker, declarative_base
from .settings import settings


DATABASE_URL = settings.database_url or "sqlite:///./dictation.db"

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args, future=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def get_db():
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()


# Best-effort lightweight migrations for databases created before answer snapshots existed
def ensure_schema(bind=None) -> None:
	bind = bind or engine
	try:
		inspector = inspect(bind)
		tables = set(inspector.get_table_names())
	except Exception:
		return
	if "problem_sets" in tables:
		cols = {c["name"] for c in inspector.get_columns("problem_sets")}
		if "voice_name" not in cols:
			with bind.begin() as conn:
				conn.exec_driver_sql("ALTER TABLE problem_sets ADD COLUMN voice_name VARCHAR(32)")
	if "student_answers" in tables:
		cols = {c["name"] for c in inspector.get_columns("student_answers")}
		if "correct_answer" not in cols:
			with bind.begin() as conn:
				conn.exec_driver_sql("ALTER TABLE student_answers ADD COLUMN correct_answer TEXT")
