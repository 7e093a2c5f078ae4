# authapi/dependencies/auth.py
from __future__ import annotations

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from authapi.core.errors import UnauthorizedError
from authapi.core.security import TokenClaims, decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


def get_token_claims(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> TokenClaims:
    """
    Validates:
      - Authorization: Bearer <token>  (missing/malformed header -> 401)
      - token signature + exp          (invalid/expired -> 403)
    Returns:
      - the user id / email claims embedded in the token
    """
    if not creds or creds.scheme.lower() != "bearer" or not creds.credentials:
        raise UnauthorizedError("Authorization token missing or invalid.")

    return decode_access_token(creds.credentials)
