"""FastAPI application: extraction, summaries, playback estimates, library.

WHY: The browser front end needs an HTTP API to turn a URL or a PDF into
readable text, request a summary, quote the playback timing model used
for word highlighting, and manage accounts and the personal library.
FastAPI provides request validation, OpenAPI docs, and dependency
injection for the storage backend.

HOW: Routes live on an APIRouter; create_app() builds a FastAPI app
around it and stores the injected backend (Backend or Unavailable) on
app.state. When no backend is injected the lifespan hook connects one
from configuration. Dependencies resolve the backend, the bearer token,
and the session for each request.

RULES:
- Error responses use the ErrorResponse schema ({"detail": ...})
- Extraction: 400 bad input, 502 fetch failure, 422 too little text
- Summaries: 400 empty content, 503 not configured, 502 model failure
- Auth/library endpoints answer 503 immediately in demo mode
- Library endpoints require an authenticated (non-guest) session:
  401 without a session, 403 for guests, 404 for other users' items
- Sessions are swept for expiry every 5 minutes
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Annotated, Optional, Union

from fastapi import APIRouter, Depends, FastAPI, File, Header, HTTPException, Request, UploadFile
from fastapi.responses import Response
from starlette.concurrency import run_in_threadpool

from speakit import __version__
from speakit.api.client import SummaryAPIError, SummaryClient
from speakit.config import BASE_WORDS_PER_MINUTE, MAX_PDF_BYTES, database_path
from speakit.core.document import (
    Document,
    estimated_duration,
    format_clock,
    seconds_per_word,
    skip_words,
)
from speakit.extract import ExtractionError, FetchError, extract_from_pdf, extract_from_url
from speakit.library.auth import AuthError, Session, SessionState
from speakit.library.backend import Backend, Unavailable, connect_backend
from speakit.library.store import SavedContent
from speakit.server.models import (
    CredentialsRequest,
    ErrorResponse,
    EstimateRequest,
    EstimateResponse,
    ExtractedContentResponse,
    ExtractUrlRequest,
    HealthResponse,
    PdfContentResponse,
    SaveContentRequest,
    SavedContentListResponse,
    SavedContentResponse,
    SessionResponse,
    SessionStateName,
    SummarizeRequest,
    SummaryResponse,
)

logger = logging.getLogger(__name__)

_CLEANUP_INTERVAL_S = 300

_AUTH_ERROR_STATUS = {
    "invalid-email": 400,
    "weak-password": 400,
    "email-already-in-use": 409,
    "invalid-credential": 401,
}

router = APIRouter()


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_backend(request: Request) -> Backend:
    """Return the injected backend, or fail fast with 503 in demo mode."""
    backend: Union[Backend, Unavailable, None] = getattr(request.app.state, "backend", None)
    if backend is None:
        raise HTTPException(status_code=503, detail="Backend is not initialized")
    if isinstance(backend, Unavailable):
        raise HTTPException(status_code=503, detail=backend.reason)
    return backend


def bearer_token(
    authorization: Annotated[Optional[str], Header()] = None,
) -> Optional[str]:
    """Extract the token from an 'Authorization: Bearer <token>' header."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def require_session(
    backend: Annotated[Backend, Depends(get_backend)],
    token: Annotated[Optional[str], Depends(bearer_token)],
) -> Session:
    session = backend.auth.resolve(token)
    if session is None:
        raise HTTPException(status_code=401, detail="Sign in required")
    return session


def require_account(session: Annotated[Session, Depends(require_session)]) -> Session:
    if session.is_anonymous:
        raise HTTPException(
            status_code=403,
            detail="Guest sessions cannot use the library. Please sign in.",
        )
    return session


BackendDep = Annotated[Backend, Depends(get_backend)]
AccountDep = Annotated[Session, Depends(require_account)]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _session_to_response(session: Session, include_token: bool = False) -> SessionResponse:
    return SessionResponse(
        state=SessionStateName(session.state.value),
        token=session.token if include_token else None,
        user_id=session.user_id,
        email=session.email,
        expires_at=session.expires_at,
    )


def _item_to_response(item: SavedContent) -> SavedContentResponse:
    return SavedContentResponse(
        id=item.id,
        title=item.title,
        content=item.content,
        type=item.type.value,
        url=item.url,
        summary=item.summary,
        created_at=item.created_at,
        last_accessed_at=item.last_accessed_at,
    )


def _item_not_found(content_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail="Item not found: {}".format(content_id))


async def _owned_item(backend: Backend, session: Session, content_id: str) -> SavedContent:
    item = await run_in_threadpool(backend.library.get, content_id)
    if item is None or item.user_id != session.user_id:
        raise _item_not_found(content_id)
    return item


def _auth_http_error(exc: AuthError) -> HTTPException:
    return HTTPException(status_code=_AUTH_ERROR_STATUS.get(exc.code, 400), detail=exc.message)


def _is_pdf_upload(file: UploadFile) -> bool:
    if file.content_type == "application/pdf":
        return True
    return (file.filename or "").lower().endswith(".pdf")


# ---------------------------------------------------------------------------
# Endpoints: Extraction
# ---------------------------------------------------------------------------


@router.post(
    "/extract-url",
    response_model=ExtractedContentResponse,
    tags=["extraction"],
    summary="Extract readable text from a web page",
    responses={
        400: {"model": ErrorResponse, "description": "Missing or invalid URL"},
        422: {"model": ErrorResponse, "description": "Page holds too little readable text"},
        502: {"model": ErrorResponse, "description": "Page could not be fetched"},
    },
)
async def extract_url(body: ExtractUrlRequest) -> ExtractedContentResponse:
    if not body.url:
        raise HTTPException(status_code=400, detail="URL is required")
    try:
        extracted = await extract_from_url(body.url)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except FetchError as exc:
        logger.warning("URL extraction failed: %s", exc)
        raise HTTPException(status_code=502, detail="Failed to extract content: {}".format(exc))
    except ExtractionError as exc:
        raise HTTPException(status_code=422, detail="Failed to extract content: {}".format(exc))
    return ExtractedContentResponse(**extracted.to_dict())


@router.post(
    "/extract-pdf",
    response_model=PdfContentResponse,
    tags=["extraction"],
    summary="Extract readable text from an uploaded PDF",
    responses={
        400: {"model": ErrorResponse, "description": "Missing file, wrong type, or too large"},
        422: {"model": ErrorResponse, "description": "PDF unreadable or holds too little text"},
    },
)
async def extract_pdf(
    file: Annotated[Optional[UploadFile], File(description="PDF document, at most 10 MB")] = None,
) -> PdfContentResponse:
    if file is None:
        raise HTTPException(status_code=400, detail="File is required")
    if not _is_pdf_upload(file):
        raise HTTPException(status_code=400, detail="Only PDF files are supported")
    if file.size is not None and file.size > MAX_PDF_BYTES:
        raise HTTPException(status_code=400, detail="File size must be less than 10MB")
    data = await file.read()
    if len(data) > MAX_PDF_BYTES:
        raise HTTPException(status_code=400, detail="File size must be less than 10MB")
    try:
        extracted = await run_in_threadpool(extract_from_pdf, data)
    except ExtractionError as exc:
        raise HTTPException(
            status_code=422, detail="Failed to extract PDF content: {}".format(exc)
        )
    return PdfContentResponse(**extracted.to_dict())


# ---------------------------------------------------------------------------
# Endpoints: Summaries and playback estimates
# ---------------------------------------------------------------------------


@router.post(
    "/summarize",
    response_model=SummaryResponse,
    tags=["summaries"],
    summary="Summarize content with the hosted language model",
    responses={
        400: {"model": ErrorResponse, "description": "Content missing"},
        502: {"model": ErrorResponse, "description": "Language model request failed"},
        503: {"model": ErrorResponse, "description": "Summarization not configured"},
    },
)
async def summarize(body: SummarizeRequest) -> SummaryResponse:
    if not body.content or not body.content.strip():
        raise HTTPException(status_code=400, detail="Content is required")
    try:
        client = SummaryClient()
    except ValueError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    try:
        async with client:
            text = await client.summarize(body.content)
    except SummaryAPIError as exc:
        logger.exception("Summarization failed")
        raise HTTPException(status_code=502, detail="Failed to generate summary: {}".format(exc.message))
    return SummaryResponse(summary=text)


@router.post(
    "/playback/estimate",
    response_model=EstimateResponse,
    tags=["playback"],
    summary="Estimate speaking time and highlight timing",
)
async def playback_estimate(body: EstimateRequest) -> EstimateResponse:
    document = Document.from_text(body.content)
    duration = estimated_duration(document.word_count, body.rate)
    return EstimateResponse(
        word_count=document.word_count,
        rate=body.rate,
        base_words_per_minute=BASE_WORDS_PER_MINUTE,
        estimated_duration=duration,
        duration_display=format_clock(duration),
        ms_per_word=seconds_per_word(body.rate) * 1000.0,
        skip_words=skip_words(body.rate),
    )


# ---------------------------------------------------------------------------
# Endpoints: Auth
# ---------------------------------------------------------------------------


@router.post(
    "/auth/sign-up",
    response_model=SessionResponse,
    status_code=201,
    tags=["auth"],
    summary="Create an account and sign in",
    responses={
        400: {"model": ErrorResponse, "description": "Invalid email or weak password"},
        409: {"model": ErrorResponse, "description": "Email already registered"},
        503: {"model": ErrorResponse, "description": "Accounts unavailable (demo mode)"},
    },
)
async def sign_up(body: CredentialsRequest, backend: BackendDep) -> SessionResponse:
    try:
        session = await run_in_threadpool(backend.auth.sign_up, body.email, body.password)
    except AuthError as exc:
        raise _auth_http_error(exc)
    return _session_to_response(session, include_token=True)


@router.post(
    "/auth/sign-in",
    response_model=SessionResponse,
    tags=["auth"],
    summary="Sign in with email and password",
    responses={
        401: {"model": ErrorResponse, "description": "Invalid email or password"},
        503: {"model": ErrorResponse, "description": "Accounts unavailable (demo mode)"},
    },
)
async def sign_in(body: CredentialsRequest, backend: BackendDep) -> SessionResponse:
    try:
        session = await run_in_threadpool(backend.auth.sign_in, body.email, body.password)
    except AuthError as exc:
        raise _auth_http_error(exc)
    return _session_to_response(session, include_token=True)


@router.post(
    "/auth/guest",
    response_model=SessionResponse,
    status_code=201,
    tags=["auth"],
    summary="Continue as a guest",
    responses={503: {"model": ErrorResponse, "description": "Accounts unavailable (demo mode)"}},
)
async def sign_in_as_guest(backend: BackendDep) -> SessionResponse:
    session = backend.auth.sign_in_anonymously()
    return _session_to_response(session, include_token=True)


@router.post(
    "/auth/sign-out",
    status_code=204,
    tags=["auth"],
    summary="End the current session",
    responses={503: {"model": ErrorResponse, "description": "Accounts unavailable (demo mode)"}},
)
async def sign_out(
    backend: BackendDep,
    token: Annotated[Optional[str], Depends(bearer_token)],
) -> Response:
    if token:
        backend.auth.sign_out(token)
    return Response(status_code=204)


@router.get(
    "/auth/session",
    response_model=SessionResponse,
    tags=["auth"],
    summary="Describe the current session",
    responses={503: {"model": ErrorResponse, "description": "Accounts unavailable (demo mode)"}},
)
async def current_session(
    backend: BackendDep,
    token: Annotated[Optional[str], Depends(bearer_token)],
) -> SessionResponse:
    session = backend.auth.resolve(token)
    if session is None:
        return SessionResponse(state=SessionStateName(SessionState.SIGNED_OUT.value))
    return _session_to_response(session)


# ---------------------------------------------------------------------------
# Endpoints: Library
# ---------------------------------------------------------------------------


@router.get(
    "/library",
    response_model=SavedContentListResponse,
    tags=["library"],
    summary="List saved items, most recently opened first",
    responses={
        401: {"model": ErrorResponse, "description": "Not signed in"},
        403: {"model": ErrorResponse, "description": "Guest session"},
        503: {"model": ErrorResponse, "description": "Library unavailable (demo mode)"},
    },
)
async def list_library(backend: BackendDep, session: AccountDep) -> SavedContentListResponse:
    items = await run_in_threadpool(backend.library.list_for_user, session.user_id)
    return SavedContentListResponse(items=[_item_to_response(item) for item in items])


@router.post(
    "/library",
    response_model=SavedContentResponse,
    status_code=201,
    tags=["library"],
    summary="Save an item to the library",
    responses={
        401: {"model": ErrorResponse, "description": "Not signed in"},
        403: {"model": ErrorResponse, "description": "Guest session"},
        503: {"model": ErrorResponse, "description": "Library unavailable (demo mode)"},
    },
)
async def save_to_library(
    body: SaveContentRequest,
    backend: BackendDep,
    session: AccountDep,
) -> SavedContentResponse:
    item = await run_in_threadpool(
        backend.library.create,
        session.user_id,
        body.title,
        body.content,
        body.type.value,
        body.url,
        body.summary,
    )
    return _item_to_response(item)


@router.get(
    "/library/{content_id}",
    response_model=SavedContentResponse,
    tags=["library"],
    summary="Get a saved item",
    responses={404: {"model": ErrorResponse, "description": "Item not found"}},
)
async def get_library_item(
    content_id: str,
    backend: BackendDep,
    session: AccountDep,
) -> SavedContentResponse:
    return _item_to_response(await _owned_item(backend, session, content_id))


@router.post(
    "/library/{content_id}/access",
    response_model=SavedContentResponse,
    tags=["library"],
    summary="Mark a saved item as opened now",
    responses={404: {"model": ErrorResponse, "description": "Item not found"}},
)
async def touch_library_item(
    content_id: str,
    backend: BackendDep,
    session: AccountDep,
) -> SavedContentResponse:
    await _owned_item(backend, session, content_id)
    if not await run_in_threadpool(backend.library.touch, content_id):
        raise _item_not_found(content_id)
    return _item_to_response(await _owned_item(backend, session, content_id))


@router.delete(
    "/library/{content_id}",
    status_code=204,
    tags=["library"],
    summary="Delete a saved item",
    responses={404: {"model": ErrorResponse, "description": "Item not found"}},
)
async def delete_library_item(
    content_id: str,
    backend: BackendDep,
    session: AccountDep,
) -> Response:
    await _owned_item(backend, session, content_id)
    if not await run_in_threadpool(backend.library.delete, content_id):
        raise _item_not_found(content_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Endpoints: Health
# ---------------------------------------------------------------------------


@router.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
    description="Liveness check; also reports whether accounts/library are available.",
)
async def health_check(request: Request) -> HealthResponse:
    backend = getattr(request.app.state, "backend", None)
    return HealthResponse(
        status="ok",
        version=__version__,
        library_available=bool(backend is not None and backend.available),
    )


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


async def _periodic_cleanup(app: FastAPI) -> None:
    """Sweep expired sessions every 5 minutes."""
    while True:
        await asyncio.sleep(_CLEANUP_INTERVAL_S)
        backend = getattr(app.state, "backend", None)
        if isinstance(backend, Backend):
            backend.auth.sessions.cleanup_expired()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Connect the backend if none was injected; run session cleanup."""
    if getattr(app.state, "backend", None) is None:
        app.state.backend = connect_backend(database_path())
    task = asyncio.create_task(_periodic_cleanup(app))
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


def create_app(backend: Union[Backend, Unavailable, None] = None) -> FastAPI:
    """Build the FastAPI app around an injected (or configured) backend."""
    application = FastAPI(
        lifespan=lifespan,
        title="SpeakIt API",
        description=(
            "Turn web articles and PDFs into readable text, summarize them, "
            "estimate read-aloud timing for word highlighting, and keep a "
            "personal library."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    application.state.backend = backend
    application.include_router(router)
    return application


app = create_app()


def run_api(host: str = "0.0.0.0", port: int = 8000) -> None:
    """Entry point for the speakit-api console script."""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host=host, port=port)
