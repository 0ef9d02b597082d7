"""
Gestionnaires d'exceptions.
- BridgeError (et sous-classes) => JSON {"ok": false, "reason", "detail", ...} avec son code HTTP.
- RequestValidationError (payload pydantic invalide) => 400 bad_request.
"""
import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from funnel_bridge.exceptions import BridgeError

logger = logging.getLogger(__name__)

def register_exception_handlers(app: FastAPI) -> None:
    """
    Enregistre les handlers d'erreurs du bridge.
    - Les 5xx sont journalisés en erreur, les 4xx en info (erreurs appelant).
    """
    @app.exception_handler(BridgeError)
    async def bridge_error(request: Request, exc: BridgeError):
        if exc.status_code >= 500:
            logger.error("bridge error path=%s reason=%s detail=%s", request.url.path, exc.reason, exc.detail)
        else:
            logger.info("bridge rejected path=%s reason=%s detail=%s", request.url.path, exc.reason, exc.detail)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def payload_error(request: Request, exc: RequestValidationError):
        errors = [
            {"loc": [str(p) for p in e.get("loc", ())], "msg": e.get("msg", "")}
            for e in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={"ok": False, "reason": "bad_request", "detail": "Invalid payload", "errors": errors},
        )
