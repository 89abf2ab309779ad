"""FastAPI integration for the build service.

Usage::

    from landing_builder.integrations.fastapi import create_build_router

    app = FastAPI()
    app.include_router(create_build_router(service, prefix="/builds"))

Requires the ``fastapi`` extra::

    pip install landing-builder[fastapi]
"""

from __future__ import annotations

try:
    from fastapi import APIRouter, HTTPException, Request
    from fastapi.responses import JSONResponse, StreamingResponse
except ImportError as _err:  # pragma: no cover
    raise ImportError(
        "FastAPI is required for landing_builder.integrations.fastapi. "
        "Install it with: pip install landing-builder[fastapi]"
    ) from _err

import structlog

from landing_builder.agent.service import BuildService
from landing_builder.core.events import encode_stream
from landing_builder.core.exceptions import BuilderError

logger = structlog.get_logger(__name__)

NDJSON_MEDIA_TYPE = "application/x-ndjson"


def _http_error(exc: BuilderError) -> HTTPException:
    status = exc.status_code or 500
    detail: dict[str, object] = {"error": str(exc)}
    if exc.code:
        detail["code"] = exc.code
    if exc.details:
        detail["details"] = exc.details
    return HTTPException(status_code=status, detail=detail)


def create_build_router(service: BuildService, prefix: str = "/builds") -> APIRouter:
    """Return an :class:`APIRouter` exposing *service*.

    Endpoints:
        - ``POST {prefix}/{project_id}/chat``  run one turn, streamed as NDJSON
        - ``GET  {prefix}/{project_id}``       current build status
        - ``POST {prefix}/{project_id}/reset`` discard the build

    Errors raised while setting up a turn map to their status code (400
    invalid turn, 404 unknown project, 500 otherwise). Once the stream has
    started the response is always 200 and failures arrive as a final
    ``{"type": "error"}`` line.
    """
    router = APIRouter(prefix=prefix, tags=["builds"])

    @router.post("/{project_id}/chat")
    async def chat(project_id: str, request: Request) -> StreamingResponse:
        body = await request.body()
        try:
            events = await service.start_turn(project_id, body)
        except BuilderError as exc:
            logger.info("turn_rejected", project_id=project_id, error=str(exc), code=exc.code)
            raise _http_error(exc) from exc
        return StreamingResponse(
            encode_stream(events),
            media_type=NDJSON_MEDIA_TYPE,
            headers={"Cache-Control": "no-cache"},
        )

    @router.get("/{project_id}")
    async def build_status(project_id: str) -> JSONResponse:
        try:
            status = await service.get_status(project_id)
        except BuilderError as exc:
            raise _http_error(exc) from exc
        if status is None:
            raise HTTPException(status_code=404, detail={"error": "No build in progress"})
        return JSONResponse(content=status.model_dump(mode="json", by_alias=True))

    @router.post("/{project_id}/reset")
    async def reset_build(project_id: str) -> JSONResponse:
        try:
            await service.reset(project_id)
        except BuilderError as exc:
            raise _http_error(exc) from exc
        return JSONResponse(content={"message": "Build state reset", "projectId": project_id})

    return router
