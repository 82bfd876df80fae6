# routes/auth.py
from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel
from jose import JWTError, jwt
from pymongo.errors import DuplicateKeyError
from datetime import datetime, timedelta, timezone
import bcrypt
import logging
import uuid

import config
from database import DocumentDecodeError, decode, get_db
from models.user import ADMIN_ROLES, User, UserRecord

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(user: User) -> str:
    expires = datetime.now(timezone.utc) + timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
    return jwt.encode({"id": user.id, "role": user.role, "exp": expires}, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


async def get_user_by_id(db, user_id: str):
    doc = await db.users.find_one({"id": user_id})
    if not doc:
        logger.warning(f"User not found for id: {user_id}")
        return None
    return decode(UserRecord, doc, "users").public()


async def _user_from_token(token: str, db) -> User:
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except JWTError as e:
        logger.error(f"JWTError: {str(e)}")
        raise HTTPException(status_code=401, detail="Invalid token")

    user_id = payload.get("id")
    if not user_id:
        logger.error("Invalid token: missing user id")
        raise HTTPException(status_code=401, detail="Invalid token")
    try:
        user = await get_user_by_id(db, user_id)
    except DocumentDecodeError as e:
        logger.error(str(e))
        raise HTTPException(status_code=500, detail="Stored user record is malformed")
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


async def get_current_user(token: str = Depends(oauth2_scheme), db=Depends(get_db)) -> User:
    return await _user_from_token(token, db)


async def get_optional_user(token: str = Depends(optional_oauth2_scheme), db=Depends(get_db)):
    if not token:
        return None
    return await _user_from_token(token, db)


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role not in ADMIN_ROLES:
        raise HTTPException(status_code=403, detail="Admin access required")
    return current_user


async def require_root_admin(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != "root-admin":
        raise HTTPException(status_code=403, detail="Root admin access required")
    return current_user


def _session_payload(user: User) -> dict:
    return {"access_token": create_access_token(user), "token_type": "bearer", "user": user.model_dump()}


@router.post("/register")
async def register(request: RegisterRequest, db=Depends(get_db)):
    email = request.email.strip().lower()
    logger.info(f"Registration attempt for email: {email}")
    if email == config.ADMIN_EMAIL:
        raise HTTPException(status_code=403, detail="Admin registration must be handled by existing administrator.")
    if not request.name.strip() or not request.password:
        raise HTTPException(status_code=400, detail="Name and password are required")
    if await db.users.find_one({"email": email}):
        raise HTTPException(status_code=400, detail="Email already registered")

    record = UserRecord(
        id=str(uuid.uuid4()),
        name=request.name.strip(),
        email=email,
        role="student",
        password=hash_password(request.password),
        createdAt=datetime.now(timezone.utc).isoformat(),
    )
    try:
        await db.users.insert_one(record.model_dump())
    except DuplicateKeyError as e:
        logger.warning(f"Duplicate registration for {email}: {str(e)}")
        raise HTTPException(status_code=400, detail="Email already registered")
    return _session_payload(record.public())


@router.post("/login")
async def login(request: LoginRequest, db=Depends(get_db)):
    email = request.email.strip().lower()
    logger.info(f"Login attempt for email: {email}")

    doc = await db.users.find_one({"email": email})
    if not doc:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    try:
        record = decode(UserRecord, doc, "users")
    except DocumentDecodeError as e:
        logger.error(str(e))
        raise HTTPException(status_code=500, detail="Stored user record is malformed")
    if not verify_password(request.password, record.password):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return _session_payload(record.public())


@router.post("/logout")
async def logout(current_user: User = Depends(get_current_user)):
    # Tokens are stateless; the client discards its copy
    logger.info(f"User {current_user.id} signed out")
    return {"message": "Signed out"}


@router.get("/current-user", response_model=User)
async def get_current_user_endpoint(current_user: User = Depends(get_current_user)):
    return current_user
