import logging
import time
import uuid
from contextlib import asynccontextmanager
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from .core.config import settings
from .core.logger import setup_logging
from .deps import build_picture_service
from .routers.pictures import router as pictures_router

setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

tags_metadata = [
    {
        "name": "pictures",
        "description": (
            "Endpoints to upload, modify, list and delete a user's pictures.\n\n"
            "- Upload via multipart.\n"
            "- Camera, profile and replacement gallery pictures must contain a face.\n"
            "- Stored pictures are returned as long-lived signed URLs and written to the user record."
        ),
    }
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Build clients up front so bad storage or signing settings stop startup
    app.state.picture_service = build_picture_service()
    yield


app = FastAPI(
    lifespan=lifespan,
    title="Photo Upload Service",
    description=(
        "How to Use:\n\n"
        "1) Upload pictures: POST /api/upload-pictures with `uid`, a `camera` file and optional `gallery0`..`gallery3` / `profilePic` files.\n"
        "2) Change the profile picture: POST /api/upload-profile-pic.\n"
        "3) Edit the gallery: POST /api/modify-gallery-pictures, sending a file or a URL to keep per position.\n"
        "4) List: GET /api/list-signed-urls/{uid} returns every stored image with a fresh signed URL.\n"
        "5) Delete: POST /api/delete-user-images/{uid} removes every stored image.\n\n"
        "Notes: the user record must already exist; this service only updates its `pictures` fields."
    ),
    openapi_tags=tags_metadata,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every request with method, path, status code, and duration."""
    start = time.time()
    request_id = uuid.uuid4().hex[:8]
    logger.info("[%s] --> %s %s", request_id, request.method, request.url.path)
    response = await call_next(request)
    duration = round(time.time() - start, 3)
    logger.info("[%s] <-- %s (%ss)", request_id, response.status_code, duration)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for failures raised outside a route body (dependencies, middleware)."""
    logger.exception("Unhandled exception path=%s", request.url.path)
    return JSONResponse(status_code=500, content={"error": str(exc)})


@app.get("/", response_class=PlainTextResponse, include_in_schema=False)
def liveness():
    return "Photo upload API running"


app.include_router(pictures_router)


def run() -> None:
    uvicorn.run("photo_upload.main:app", host=settings.host, port=settings.port)
