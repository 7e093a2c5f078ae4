# authapi/routes/auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from authapi.core.database import get_db
from authapi.schemas.auth import (
    AuthOut,
    CodeChallengeOut,
    LoginIn,
    PasswordResetConfirmIn,
    PasswordResetIn,
    RegisterIn,
    RegisterOut,
    VerifyIn,
)
from authapi.schemas.user import UserOut
from authapi.services import auth as auth_service

router = APIRouter(tags=["auth"])


@router.post("/register", response_model=RegisterOut, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterIn, response: Response, db: Session = Depends(get_db)):
    result = auth_service.register(
        db,
        username=payload.username,
        password=payload.password,
        email=payload.email,
    )
    if not result.created:
        response.status_code = status.HTTP_200_OK

    body = UserOut.model_validate(result.user).model_dump()
    return RegisterOut(**body, code=result.code.code, expiration_time=result.code.expires_at)


@router.post("/verify", response_model=AuthOut)
def verify_registration(payload: VerifyIn, db: Session = Depends(get_db)):
    result = auth_service.verify_registration(db, email=payload.email, code=payload.code)
    return {"user": UserOut.model_validate(result.user), "token": result.token}


@router.post("/login", response_model=AuthOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    result = auth_service.login(db, email=payload.email, password=payload.password)
    return {"user": UserOut.model_validate(result.user), "token": result.token}


@router.post("/password-reset", response_model=CodeChallengeOut, status_code=status.HTTP_201_CREATED)
def request_password_reset(payload: PasswordResetIn, response: Response, db: Session = Depends(get_db)):
    resolved = auth_service.request_password_reset(db, email=payload.email)
    if not resolved.just_created:
        response.status_code = status.HTTP_200_OK
    return {"code": resolved.code, "expiration_time": resolved.expires_at}


@router.post("/password-reset/confirm", response_model=UserOut)
def confirm_password_reset(payload: PasswordResetConfirmIn, db: Session = Depends(get_db)):
    return auth_service.confirm_password_reset(
        db,
        email=payload.email,
        code=payload.code,
        new_password=payload.new_password,
    )
