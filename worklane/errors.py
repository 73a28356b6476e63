import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from worklane.rbac.errors import AuthorizationCheckFailed, WorklaneError

logger = logging.getLogger(__name__)

async def worklane_exception_handler(request: Request, exc: WorklaneError) -> JSONResponse:
    if isinstance(exc, AuthorizationCheckFailed):
        # fail closed: the request is rejected, but not reported as a denial
        logger.error("authorization check failed on %s %s", request.method, request.url.path)
    else:
        logger.warning(
            "%s on %s %s: %s", exc.error_code, request.method, request.url.path, exc.message
        )

    body = {"detail": exc.message, "code": exc.error_code}
    body.update(exc.details())
    return JSONResponse(status_code=exc.status_code, content=body)

def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(WorklaneError, worklane_exception_handler)
