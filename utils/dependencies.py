from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
import database
from config import settings

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login")


def get_db():
    """Database handle for request handlers. Tests override this dependency."""
    return database.db


@database.wrap_store_errors
async def find_user(db, user_oid):
    return await db.users.find_one({"_id": user_oid})


async def get_current_user(token: str = Depends(oauth2_scheme), db=Depends(get_db)):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
        user_id: str = payload.get("sub")
        if user_id is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    user_oid = database.to_object_id(user_id)
    if user_oid is None:
        raise credentials_exception

    user = await find_user(db, user_oid)
    if user is None:
        raise credentials_exception

    # Add string ID for easy access
    user["id"] = str(user["_id"])
    return user


async def admin_required(current_user: dict = Depends(get_current_user)):
    if current_user.get("role") != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user
