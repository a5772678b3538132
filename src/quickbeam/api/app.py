"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import quote

from fastapi import (
    BackgroundTasks,
    FastAPI,
    File,
    Query,
    Request,
    UploadFile,
    status,
)
from fastapi.responses import JSONResponse, Response

from quickbeam.api.admin import router as admin_router
from quickbeam.api.models import (
    ErrorResponse,
    SenderConnectedResponse,
    SessionCreatedResponse,
    StatusResponse,
    UploadResponse,
)
from quickbeam.app_logging import configure_logging
from quickbeam.config import normalize_base_url
from quickbeam.containers import AppContainer
from quickbeam.domain.errors import (
    InvalidSessionStateError,
    PayloadTooLargeError,
    RelayError,
    SenderConflictError,
    SessionNotFoundError,
    StorageFailureError,
)
from quickbeam.domain.sessions import ClientRole

_ERROR_STATUS: dict[type[RelayError], int] = {
    SessionNotFoundError: status.HTTP_404_NOT_FOUND,
    SenderConflictError: status.HTTP_409_CONFLICT,
    InvalidSessionStateError: status.HTTP_400_BAD_REQUEST,
    PayloadTooLargeError: 413,
    StorageFailureError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)
    base_url = normalize_base_url(container.settings.public_base_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.container.sweeper.start()
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
        return _error_response(
            _ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR),
            exc.message,
            exc.error_code,
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/api/session/request", status_code=status.HTTP_201_CREATED)
    async def request_session(request: Request) -> SessionCreatedResponse:
        """Receiver asks for a new session and its pairing URL."""
        state_container: AppContainer = request.app.state.container
        created = state_container.session_service.create_session(
            ip=_client_ip(request)
        )
        full_url = _sender_url(request, base_url, created.session_id)
        return SessionCreatedResponse(
            session_id=created.session_id,
            full_url=full_url,
            qr_code_data=full_url,
            timeout_ms=created.timeout_ms,
            polling_interval_ms=created.polling_interval_ms,
            expires_at=created.expires_at,
            deadline_ms=int(created.expires_at.timestamp() * 1000),
        )

    @app.post("/api/session/{session_id}/connect")
    async def connect_sender(
        session_id: str, request: Request
    ) -> SenderConnectedResponse:
        """Sender attaches to the session it scanned."""
        state_container: AppContainer = request.app.state.container
        logger.info(
            "Sender connect attempt",
            extra={"session_id": session_id, "ip": _client_ip(request)},
        )
        connected = await state_container.session_service.connect_sender(
            session_id, ip=_client_ip(request)
        )
        return SenderConnectedResponse(
            session_id=connected.session_id,
            timeout_ms=connected.timeout_ms,
            polling_interval_ms=connected.polling_interval_ms,
        )

    # POST rather than GET: an upstream CDN cached GET status responses.
    @app.post("/api/session/{session_id}/status", response_model=StatusResponse)
    async def poll_status(
        session_id: str, request: Request, client: str | None = None
    ) -> StatusResponse | JSONResponse:
        """Heartbeat from either side; receivers also collect new image ids."""
        role = _parse_role(client)
        if role is None:
            return _error_response(
                status.HTTP_400_BAD_REQUEST,
                "Missing or invalid client type query parameter.",
            )
        state_container: AppContainer = request.app.state.container
        result = await state_container.session_service.poll_status(session_id, role)
        return StatusResponse(
            session_status=result.status.value,
            partner_connected=result.partner_connected,
            remaining_timeout_ms=result.remaining_ms,
            new_image_ids=result.new_image_ids,
            photo_count=result.photo_count,
        )

    @app.post("/upload", response_model=UploadResponse)
    async def upload_image(
        request: Request,
        session_id: str | None = Query(default=None, alias="sessionId"),
        file: UploadFile | None = File(default=None),
    ) -> UploadResponse | JSONResponse:
        """Sender uploads one image into the session."""
        state_container: AppContainer = request.app.state.container
        if not session_id:
            return _error_response(
                status.HTTP_400_BAD_REQUEST, "Missing session ID.", "BAD_REQUEST"
            )
        if file is None:
            logger.warning(
                "Upload rejected: no file data",
                extra={"session_id": session_id},
            )
            return _error_response(
                status.HTTP_400_BAD_REQUEST, "No file uploaded.", "BAD_REQUEST"
            )
        limit = state_container.relay_service.max_upload_bytes
        try:
            data = await file.read(limit + 1)
        finally:
            await file.close()
        stored = await state_container.relay_service.upload_image(
            session_id,
            data,
            file.filename,
            ip=_client_ip(request),
        )
        return UploadResponse(
            image_id=stored.image_id,
            message=f"File {stored.filename} uploaded successfully.",
        )

    @app.get("/image/{session_id}/{image_id}")
    async def fetch_image(
        session_id: str,
        image_id: str,
        request: Request,
        background_tasks: BackgroundTasks,
    ) -> Response:
        """Receiver downloads an image once; it is deleted after sending."""
        state_container: AppContainer = request.app.state.container
        relay = state_container.relay_service
        delivered = await relay.fetch_image(
            session_id, image_id, ip=_client_ip(request)
        )
        background_tasks.add_task(relay.release_image, delivered)
        return Response(
            content=delivered.content,
            media_type=delivered.media_type,
            headers={"Cache-Control": "no-store"},
        )

    return app


def _error_response(
    status_code: int, message: str, error_code: str | None = None
) -> JSONResponse:
    payload = ErrorResponse(message=message, error_code=error_code)
    return JSONResponse(
        status_code=status_code, content=payload.model_dump(by_alias=True)
    )


def _parse_role(raw: str | None) -> ClientRole | None:
    """Parse the ``client`` query parameter into a role."""
    if raw is None:
        return None
    try:
        return ClientRole(raw)
    except ValueError:
        return None


def _first_header_value(value: str | None) -> str | None:
    if not value:
        return None
    first = value.split(",")[0].strip()
    return first or None


def _client_ip(request: Request) -> str | None:
    """Return the originating client address, honoring one proxy hop."""
    forwarded = _first_header_value(request.headers.get("x-forwarded-for"))
    if forwarded:
        return forwarded
    return request.client.host if request.client else None


def _sender_url(request: Request, base_url: str | None, session_id: str) -> str:
    """Build the URL the sender opens, usually by scanning it as a QR code."""
    if base_url is None:
        protocol = (
            _first_header_value(request.headers.get("x-forwarded-proto")) or "https"
        )
        host = _first_header_value(
            request.headers.get("x-forwarded-host")
        ) or request.headers.get("host", "localhost")
        base_url = f"{protocol}://{host}"
    return f"{base_url}/sender?SessionId={quote(session_id, safe='')}"
