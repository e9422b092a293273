"""
ReclamAssur - FastAPI Application

Backend for contesting insurance claim refusals.

Flow:
- Client submits a claim form → Dossier (+ uploaded documents)
- Admin builds a letter from a template or by AI generation → Courrier draft
- Admin validates, edits and dispatches the letter; deadlines are tracked
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .database import init_db
from .errors import ErrorType, ReclamAssurError
from .routers import (
    auth_router, dossiers_router, storage_router, courriers_router,
    admin_router, functions_router
)

logger = logging.getLogger(__name__)

# HTTP status for each service error category
ERROR_STATUS_CODES = {
    ErrorType.DOSSIER_NOT_FOUND: 404,
    ErrorType.NOT_FOUND: 404,
    ErrorType.ACCESS_DENIED: 403,
    ErrorType.VALIDATION_FAILED: 400,
    ErrorType.PROFILE_MISSING: 500,
    ErrorType.NO_PROVIDER_CONFIGURED: 500,
    ErrorType.PROVIDER_FAILURE: 502,
    ErrorType.PROVIDER_RATE_LIMIT: 502,
    ErrorType.STORAGE_FAILURE: 500,
}


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and create tables on startup."""
    configure_logging(get_settings().log_level)
    init_db()
    yield

# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="ReclamAssur",
    description="""
    ReclamAssur - Insurance Claim Dispute Backend

    Clients file dossiers contesting an insurer's refusal. Administrators
    produce dispute letters from templates or with AI providers, validate and
    send them, and follow legal deadlines.

    ## Letter generation
    1. **Templates**: `{{variable}}` placeholders filled from the dossier
    2. **AI**: Groq, Mistral, OpenAI, Claude with retries and backoff
    3. **Fallback**: static letter per type when every provider fails
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ReclamAssurError)
async def reclamassur_error_handler(request: Request, exc: ReclamAssurError):
    status_code = ERROR_STATUS_CODES.get(exc.error_type, 500)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error_type": exc.error_type.value},
    )


# Include routers
app.include_router(auth_router)
app.include_router(dossiers_router)
app.include_router(storage_router)
app.include_router(courriers_router)
app.include_router(admin_router)
app.include_router(functions_router)


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "ReclamAssur",
        "version": "1.0.0",
        "description": "Insurance Claim Dispute Backend",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


# For running with: python -m reclamassur.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
