from datetime import datetime, timedelta
from jose import jwt, JWTError
from fastapi import HTTPException

from app.core.config import JWT_SECRET, JWT_ALGORITHM

ROLES = ("customer", "studio", "admin")


# -------- CREATE TOKEN --------
def create_access_token(data: dict, expires_minutes: int = 60):
    """Sign a caller token. Tokens are normally issued by the auth service."""
    to_encode = data.copy()
    to_encode.update({"exp": datetime.utcnow() + timedelta(minutes=expires_minutes)})
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGORITHM)


# -------- DECODE TOKEN --------
def decode_token(token: str):
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])

        if "sub" not in payload or "role" not in payload:
            raise HTTPException(status_code=401, detail="Invalid token payload")

        if payload["role"] not in ROLES:
            raise HTTPException(status_code=401, detail="Invalid role")

        return payload

    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
