"""Bot endpoints the OpenChat platform calls into."""

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Request
from fastapi.responses import JSONResponse

from ....core.logging_utils import log_event
from ....integrations.openchat.constants import COMMAND_JWT_HEADER, SIGNATURE_HEADER
from ....integrations.openchat.errors import OpenChatError
from ....integrations.openchat.service import OpenChatBridgeService

logger = logging.getLogger("openchat_bridge.routes.openchat")


def _service(request: Request) -> OpenChatBridgeService:
    return request.app.state.openchat_service


def build_openchat_routes() -> APIRouter:
    router = APIRouter(tags=["openchat"])

    @router.post("/notify")
    async def notify(request: Request) -> JSONResponse:
        signature = request.headers.get(SIGNATURE_HEADER)
        if not signature:
            return JSONResponse(status_code=400, content={"error": "Missing OpenChat signature"})
        body = await request.body()
        try:
            await _service(request).handle_notification(signature, body)
        except Exception as exc:
            log_event(logger, logging.ERROR, "openchat.notify.failed", exc=exc)
            return JSONResponse(status_code=500, content={"error": "Internal server error"})
        return JSONResponse(status_code=200, content={"ok": True})

    @router.post("/execute_command")
    async def execute_command(
        request: Request, background_tasks: BackgroundTasks
    ) -> JSONResponse:
        service = _service(request)
        if service.command_client_factory is None:
            return JSONResponse(
                status_code=501,
                content={"error": "Command execution is not configured"},
            )
        jwt = request.headers.get(COMMAND_JWT_HEADER)
        if not jwt:
            return JSONResponse(status_code=400, content={"error": "Access token not found"})
        try:
            outcome = await service.execute_command(jwt)
        except (OpenChatError, ValueError) as exc:
            log_event(logger, logging.WARNING, "openchat.command.rejected", exc=exc)
            return JSONResponse(status_code=400, content={"error": str(exc)})
        except Exception as exc:
            log_event(logger, logging.ERROR, "openchat.command.failed", exc=exc)
            return JSONResponse(status_code=500, content={"error": "Internal server error"})
        if outcome.follow_up is not None:
            background_tasks.add_task(outcome.follow_up)
        return JSONResponse(status_code=outcome.status_code, content=outcome.body)

    @router.get("/bot_definition")
    async def bot_definition(request: Request) -> JSONResponse:
        return JSONResponse(content=_service(request).bot_definition())

    @router.get("/")
    async def root(request: Request) -> JSONResponse:
        return JSONResponse(content=_service(request).bot_definition())

    @router.get("/health")
    async def health(request: Request) -> dict[str, object]:
        service = _service(request)
        return {"status": "ok", "installations": len(service.registry)}

    return router
