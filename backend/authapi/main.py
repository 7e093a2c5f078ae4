import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from authapi.core.config import settings, require_jwt_secret
from authapi.core.errors import AuthServiceError
from authapi.routes.auth import router as auth_router
from authapi.routes.users import router as users_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

require_jwt_secret()

app = FastAPI(title="Verification Code Auth Service")
logger.info(
    "Startup config: ENV=%s code_ttl=%ss code_length=%s check_expiry_on_consume=%s",
    settings.ENV,
    settings.VERIFICATION_CODE_TTL_SECONDS,
    settings.VERIFICATION_CODE_LENGTH,
    settings.VERIFICATION_CODE_CHECK_EXPIRY_ON_CONSUME,
)

_ERROR_CODE_BY_STATUS: dict[int, str] = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
}


def _error_code(status_code: int) -> str:
    return _ERROR_CODE_BY_STATUS.get(int(status_code), "HTTP_ERROR")


def _log_failure(request: Request, status_code: int, message: str) -> None:
    level = logging.ERROR if status_code >= 500 else logging.WARNING
    logger.log(
        level,
        "Request failed: status=%s message=%s method=%s url=%s user_agent=%s",
        status_code,
        message,
        request.method,
        request.url.path,
        request.headers.get("user-agent"),
    )


@app.exception_handler(AuthServiceError)
def auth_service_error_handler(request: Request, exc: AuthServiceError):
    _log_failure(request, exc.status_code, exc.message)
    if exc.status_code >= 500:
        logger.error("Internal failure", exc_info=exc)

    payload: dict = {"error": exc.error, "message": exc.message}
    if exc.details:
        payload["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=payload)


@app.exception_handler(HTTPException)
def http_exception_handler(request: Request, exc: HTTPException):
    detail = exc.detail
    message: str
    details: dict | None = None

    if isinstance(detail, str):
        message = detail
    elif isinstance(detail, dict):
        msg = detail.get("message")
        message = msg if isinstance(msg, str) and msg else "Request failed"
        det = detail.get("details")
        details = det if isinstance(det, dict) else None
    else:
        message = str(detail) if detail is not None else "Request failed"

    _log_failure(request, exc.status_code, message)
    payload: dict = {"error": _error_code(exc.status_code), "message": message}
    if details:
        payload["details"] = details
    return JSONResponse(status_code=exc.status_code, content=payload, headers=exc.headers)


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # pydantic may put exception objects into "ctx"; keep the rest of each entry.
    out: list[dict] = []
    for err in exc.errors():
        entry = {k: v for k, v in err.items() if k != "ctx"}
        if "input" in entry and not isinstance(entry["input"], (str, int, float, bool, type(None), list, dict)):
            entry["input"] = str(entry["input"])
        out.append(entry)
    return out


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError):
    _log_failure(request, 400, "Invalid request payload")
    return JSONResponse(
        status_code=400,
        content={
            "error": "VALIDATION_ERROR",
            "message": "Invalid request payload",
            "details": {"errors": jsonable_errors(exc)},
        },
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(auth_router)
app.include_router(users_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}
