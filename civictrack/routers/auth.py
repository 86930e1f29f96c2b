# File: civictrack/routers/auth.py

import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import func
from sqlalchemy.orm import Session
from civictrack.db.session import get_db
from civictrack.models.user import User, UserRole
from civictrack.schemas.auth import RegisterIn, LoginIn, TokenPair
from civictrack.core.security import hash_password, verify_password, make_tokens, get_current_user
from civictrack.core.notices import ok
from civictrack.core.ratelimit import limiter
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/register", response_model=TokenPair, status_code=201)
@limiter.limit("5/minute")
def register(request: Request, body: RegisterIn, db: Session = Depends(get_db)):
    email = body.email.strip().lower()
    if db.query(User).filter(func.lower(User.email) == email).first():
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        email=email,
        username=body.username.strip(),
        phone=(body.phone or "").strip() or None,
        hashed_password=hash_password(body.password),
        role=UserRole.citizen,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered user %s", user.id)

    # Sign-in immediately
    return make_tokens(user.id, user.role.value)

@router.post("/login", response_model=TokenPair)
@limiter.limit("10/minute")
def login(request: Request, body: LoginIn, db: Session = Depends(get_db)):
    user = db.query(User).filter(func.lower(User.email) == body.email.strip().lower()).first()
    if not user or not user.hashed_password:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not verify_password(body.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if user.is_banned:
        raise HTTPException(status_code=403, detail="Your account has been banned. Please contact support.")
    user.last_login = datetime.now(timezone.utc)
    db.commit()
    return make_tokens(user.id, user.role.value)

@router.get("/me")
def me(current = Depends(get_current_user)):
    return {
        "id": current.id,
        "email": current.email,
        "username": current.username,
        "phone": current.phone,
        "role": current.role.value,
        "is_banned": current.is_banned,
    }

@router.post("/logout")
def logout(current = Depends(get_current_user)):
    # tokens are stateless; the client drops them
    return ok("Logged out successfully")
