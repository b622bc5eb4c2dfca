from datetime import datetime, timedelta, timezone
from typing import Optional, Dict

from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import OAuth2PasswordRequestForm, OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel
import logging

from ..settings import settings

router = APIRouter(prefix="/auth", tags=["auth"])

logging.getLogger('passlib').setLevel(logging.ERROR)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
# auto_error=False: when no teacher account is configured the routes stay open
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


class Token(BaseModel):
	access_token: str
	token_type: str = "bearer"


class Teacher(BaseModel):
	username: str


_teachers: Dict[str, str] = {}


def _ensure_seed_teacher() -> None:
	username = settings.seed_username
	password = settings.seed_password_plain
	if username and password and username not in _teachers:
		# Truncate password to 72 bytes for bcrypt compatibility
		password_bytes = password.encode('utf-8')[:72]
		_teachers[username] = pwd_context.hash(password_bytes.decode('utf-8', errors='ignore'))


def verify_password(plain_password: str, hashed_password: str) -> bool:
	plain = plain_password.encode('utf-8')[:72].decode('utf-8', errors='ignore')
	return pwd_context.verify(plain, hashed_password)


def authenticate_teacher(username: str, password: str) -> Optional[Teacher]:
	if not settings.teacher_auth_enabled:
		return None
	_ensure_seed_teacher()
	hashed = _teachers.get(username)
	if hashed and verify_password(password, hashed):
		return Teacher(username=username)
	return None


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
	to_encode = data.copy()
	delta = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
	to_encode.update({"exp": datetime.now(timezone.utc) + delta})
	return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


@router.post("/token", response_model=Token)
async def login(form_data: OAuth2PasswordRequestForm = Depends()):
	teacher = authenticate_teacher(form_data.username, form_data.password)
	if not teacher:
		raise HTTPException(status_code=401, detail="Incorrect username or password")
	return Token(access_token=create_access_token({"sub": teacher.username}))


def require_teacher(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[Teacher]:
	"""Guard for teacher-facing mutations. A no-op unless SEED_USERNAME/SEED_PASSWORD are set."""
	if not settings.teacher_auth_enabled:
		return None
	credentials_exception = HTTPException(
		status_code=401,
		detail="Could not validate credentials",
		headers={"WWW-Authenticate": "Bearer"},
	)
	if not token:
		raise credentials_exception
	try:
		payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
	except JWTError:
		raise credentials_exception
	username: str | None = payload.get("sub")
	if username is None or username != settings.seed_username:
		raise credentials_exception
	return Teacher(username=username)


@router.get("/me", response_model=Optional[Teacher])
async def me(teacher: Optional[Teacher] = Depends(require_teacher)):
	return teacher
