"""
HTTP and WebSocket entry points for the citizen-services portal.

Handlers stay thin: they translate requests into repository and artifact
service calls and map PortalError subclasses onto status codes.
"""

import json
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Body, Depends, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from .schemas import (
    ApplicationCreatedResponse,
    ApplicationListResponse,
    ApplicationResponse,
    ErrorResponse,
    HealthResponse,
)
from ..core.config import CORS_ORIGINS, VERSION, debug_enabled
from ..core.errors import PortalError
from ..services import PortalServices, build_services
from ..util.logging import logger


def _services_for(app: FastAPI) -> PortalServices:
    if app.state.services is None:
        app.state.services = build_services()
    return app.state.services


def get_services(request: Request) -> PortalServices:
    """Dependency returning the app's service container, built on first use."""
    return _services_for(request.app)


def create_app(services: Optional[PortalServices] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if app.state.services is not None:
            app.state.services.shutdown()

    app = FastAPI(
        title="Panchayat Citizen Services API",
        version=VERSION,
        description="Application records, official document downloads and live status updates",
        docs_url="/docs" if debug_enabled() else None,
        redoc_url="/redoc" if debug_enabled() else None,
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PortalError)
    async def portal_error_handler(request: Request, exc: PortalError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        messages = [f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()]
        return JSONResponse(status_code=400, content={"message": "; ".join(messages) or "Invalid request"})

    @app.get("/health", response_model=HealthResponse)
    def health_check_endpoint(services: PortalServices = Depends(get_services)):
        """Check system health. Degraded means records are served from the fallback store."""
        durable = services.repositories.durable_reachable()
        return HealthResponse(
            status="healthy" if durable else "degraded",
            version=VERSION,
            durable_store=durable,
            cache_dir=str(services.cache.cache_dir),
            connections=len(services.registry),
        )

    @app.post("/api/{kind}/applications", status_code=201, response_model=ApplicationCreatedResponse,
              responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}})
    def create_application(kind: str, fields: Dict[str, Any] = Body(...),
                           services: PortalServices = Depends(get_services)):
        repository = services.repositories.for_kind(kind)
        record = repository.create(fields)
        return ApplicationCreatedResponse(
            applicationId=record.id,
            status=repository.kind.human_status(record.status),
            message=f"{repository.kind.category} application submitted successfully",
        )

    @app.get("/api/applications", response_model=ApplicationListResponse)
    def list_applications(citizen_id: Optional[str] = None, services: PortalServices = Depends(get_services)):
        if citizen_id:
            records = services.repositories.list_by_owner(citizen_id)
        else:
            records = services.repositories.list_all()
        return ApplicationListResponse(items=[ApplicationResponse.from_record(r) for r in records])

    @app.get("/api/applications/{record_id}", response_model=ApplicationResponse,
             responses={404: {"model": ErrorResponse}})
    def get_application(record_id: str, services: PortalServices = Depends(get_services)):
        return ApplicationResponse.from_record(services.repositories.get(record_id))

    @app.put("/api/applications/{record_id}", response_model=ApplicationResponse,
             responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}})
    def update_application(record_id: str, fields: Dict[str, Any] = Body(...),
                           services: PortalServices = Depends(get_services)):
        return ApplicationResponse.from_record(services.repositories.update(record_id, fields))

    @app.get("/api/applications/{record_id}/download",
             responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}})
    def download_application(record_id: str, format: str = "pdf", inline: bool = False,
                             services: PortalServices = Depends(get_services)):
        """Download the official document (pdf) or its image (jpg)."""
        artifact = services.artifacts.request_artifact(record_id, format)
        disposition = "inline" if inline else "attachment"
        return Response(
            content=artifact.content,
            media_type=artifact.content_type,
            headers={
                "Content-Disposition": f'{disposition}; filename="{artifact.filename}"',
                "X-Artifact-Placeholder": "true" if artifact.placeholder else "false",
            },
        )

    @app.websocket("/ws")
    async def live_updates(websocket: WebSocket):
        """Live channel: the client sends join(citizenId), the server pushes applicationUpdate events."""
        services = _services_for(websocket.app)
        await websocket.accept()
        connection_id = services.hub.attach(websocket)

        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    message = json.loads(raw)
                except ValueError:
                    await websocket.send_json({"event": "error", "message": "Messages must be JSON"})
                    continue

                event = message.get("event") if isinstance(message, dict) else None
                if event == "join":
                    citizen_id = message.get("citizenId")
                    if not isinstance(citizen_id, str) or not citizen_id.strip():
                        await websocket.send_json({"event": "error", "message": "citizenId is required"})
                        continue
                    services.registry.bind(citizen_id.strip(), connection_id)
                    await websocket.send_json({"event": "joined", "citizenId": citizen_id.strip()})
                elif event == "ping":
                    services.registry.touch(connection_id)
                    await websocket.send_json({"event": "pong"})
                else:
                    await websocket.send_json({"event": "error", "message": f"Unknown event: {event}"})
        except WebSocketDisconnect:
            logger.debug(f"Live connection {connection_id} closed")
        finally:
            citizen_id = services.registry.unbind(connection_id)
            services.hub.detach(connection_id)
            logger.log_operation("live.disconnect", "success", {"connection_id": connection_id, "citizen_id": citizen_id})

    return app


app = create_app()
