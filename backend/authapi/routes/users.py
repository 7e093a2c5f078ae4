from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from authapi.core.database import get_db
from authapi.core.security import TokenClaims
from authapi.dependencies.auth import get_token_claims
from authapi.models.user import User
from authapi.schemas.auth import CodeChallengeOut
from authapi.schemas.user import ChangePasswordConfirmIn, ChangePasswordIn, UserOut
from authapi.services import auth as auth_service

router = APIRouter(tags=["users"])


@router.get("/current-user", response_model=UserOut)
def get_current_user(
    claims: TokenClaims = Depends(get_token_claims),
    db: Session = Depends(get_db),
) -> User:
    return auth_service.current_user(db, claims)


@router.post("/change-password", response_model=CodeChallengeOut, status_code=status.HTTP_201_CREATED)
def change_password(
    payload: ChangePasswordIn,
    response: Response,
    claims: TokenClaims = Depends(get_token_claims),
    db: Session = Depends(get_db),
):
    # The password itself is only replaced by /change-password/confirm, once the code is consumed.
    resolved = auth_service.request_password_change(
        db,
        claims,
        current_password=payload.current_password,
        new_password=payload.new_password,
        confirm_password=payload.confirm_password,
    )
    if not resolved.just_created:
        response.status_code = status.HTTP_200_OK
    return {"code": resolved.code, "expiration_time": resolved.expires_at}


@router.post("/change-password/confirm", response_model=UserOut)
def confirm_change_password(
    payload: ChangePasswordConfirmIn,
    claims: TokenClaims = Depends(get_token_claims),
    db: Session = Depends(get_db),
) -> User:
    return auth_service.confirm_password_change(
        db,
        claims,
        code=payload.code,
        new_password=payload.new_password,
    )
