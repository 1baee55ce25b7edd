"""
Course Web Services API

Main FastAPI application exposing the course web service functions:
grade reading and writing, and forum listing.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from database import init_db
from api import webservice_router

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# --------------- Lifespan ---------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler – initialise DB on startup."""
    logger.info("Initializing database...")
    init_db()
    logger.info("Database initialized.")
    yield


# --------------- FastAPI app ---------------

app = FastAPI(
    title="Course Web Services API",
    description="""
Web service functions for courses, grades and forums.

## Functions

Call a function with `POST /webservice/{wsfunction}` and a body of
`{"requester_id": ..., "params": {...}}`.

- **local_custommm_get_grades**: Grade items of an activity, optionally with student grades
- **local_custommm_update_grade**: Change a grade item and/or student grades
- **local_custommm_get_forums_by_courses**: Forums of a set of courses
- **local_custommm_get_forum_discussions**: Discussions of a set of forums
- **local_custommm_get_forum_posts**: Posts of a discussion

### Authorization Rules
- Every call is checked against the caller's capabilities in the course
  or module context before any record is read or written
- A denied check fails the whole call; results are never silently filtered
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc), "type": type(exc).__name__}
    )


# Include routers
app.include_router(webservice_router)


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - API health check."""
    return {
        "status": "online",
        "service": "Course Web Services API",
        "version": "1.0.0"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
