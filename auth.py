import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from passlib.context import CryptContext
from jose import jwt
from pymongo.errors import DuplicateKeyError

import models
from config import settings
from database import obj_to_str, utcnow, wrap_store_errors
from exceptions import DuplicateEmailError, DuplicateUsernameError
from utils.dependencies import get_current_user, get_db

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
router = APIRouter(prefix="/auth", tags=["Auth"])

def hash_password(password: str):
    return pwd_context.hash(password)

def verify_password(plain, hashed):
    return pwd_context.verify(plain, hashed)

def create_access_token(data: dict, expires_delta: timedelta = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=15))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)

def user_response(user: dict) -> models.UserResponse:
    return models.UserResponse(
        id=obj_to_str(user["_id"]),
        username=user["username"],
        email=user["email"],
        role=user.get("role", models.Role.user.value),
    )

@wrap_store_errors
async def create_user(db, user: models.UserCreate, role: models.Role = models.Role.user) -> dict:
    if await db.users.find_one({"email": user.email}, {"_id": 1}):
        raise DuplicateEmailError()
    if await db.users.find_one({"username": user.username}, {"_id": 1}):
        raise DuplicateUsernameError()

    new_user = {
        "username": user.username,
        "email": user.email,
        "password": hash_password(user.password),
        "role": role.value,
        "created_at": utcnow(),
    }
    try:
        await db.users.insert_one(new_user)
    except DuplicateKeyError as e:
        # lost a race with a concurrent registration
        if await db.users.find_one({"username": user.username}, {"_id": 1}):
            raise DuplicateUsernameError() from e
        raise DuplicateEmailError() from e
    logger.info(f"User registered: {new_user['_id']} role={role.value}")
    return new_user

@wrap_store_errors
async def find_login_user(db, login: str):
    """Look up an account by email or username. Both are unique and usernames
    cannot contain "@", so a login matches at most one account."""
    field = "email" if "@" in login else "username"
    return await db.users.find_one({field: login})

@router.post("/register", response_model=models.UserResponse, status_code=status.HTTP_201_CREATED)
async def register(user: models.UserCreate, db=Depends(get_db)):
    return user_response(await create_user(db, user))

@router.post("/login", response_model=models.Token)
async def login(form_data: OAuth2PasswordRequestForm = Depends(), db=Depends(get_db)):
    user = await find_login_user(db, form_data.username)

    if not user or not verify_password(form_data.password, user["password"]):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = create_access_token(
        {"sub": str(user["_id"]), "role": user["role"]},
        timedelta(minutes=settings.access_token_expire_minutes),
    )
    return models.Token(access_token=token)

@router.get("/me", response_model=models.UserResponse)
async def get_current_user_info(current_user: dict = Depends(get_current_user)):
    """Get current user information"""
    return user_response(current_user)
