"""
Gestionnaires d'exceptions utilisés par la factory.
- SignupFlowError: statut porté par la classe d'erreur, body {"detail", "code"}.
- RequestValidationError: 400 (et non 422) avec la liste d'erreurs pydantic.
- HTTPException: JSON FastAPI standard (ex: 429 du rate limiting).
- Toute autre exception: 500 journalisée, sans écho du contenu de la requête.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from paygate.errors import SignupFlowError

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(SignupFlowError)
    async def signup_flow_error(request: Request, exc: SignupFlowError):
        if exc.status_code >= 500:
            logger.warning("request.failed path=%s code=%s: %s", request.url.path, exc.code, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        missing = any(err.get("type") == "missing" for err in errors)
        return JSONResponse(
            status_code=400,
            content={
                "detail": "Champs manquants" if missing else "Données invalides",
                "code": "missing_fields" if missing else "invalid_input",
                "errors": jsonable_encoder(errors, exclude={"input", "ctx", "url"}),
            },
        )

    @app.exception_handler(HTTPException)
    async def http_error(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception("request.crashed path=%s", request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Erreur interne", "code": "internal_error"})
