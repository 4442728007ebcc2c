from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from ...integrations.openchat.service import OpenChatBridgeService
from .routes.openchat import build_openchat_routes


def _app_lifespan(service: OpenChatBridgeService):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        service.log_ready()
        try:
            yield
        finally:
            await service.aclose()

    return lifespan


def create_app(service: OpenChatBridgeService) -> FastAPI:
    app = FastAPI(redirect_slashes=False, lifespan=_app_lifespan(service))
    app.state.openchat_service = service
    app.include_router(build_openchat_routes())
    return app
