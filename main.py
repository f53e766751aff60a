import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pymongo.errors import PyMongoError
from starlette.datastructures import UploadFile as FormFile

import config
from cache import AnalysisCache
from database import Database
from errors import NotFoundError, PicRateError, ValidationError
from images import ImageStore, decode_inline, to_data_url
from leaderboard import Leaderboard
from rating import GeminiRatingService, RatingService
from schemas import CacheEntry, CacheEntryResponse, ScorerEntry, ScorerResponse

log = logging.getLogger(__name__)

IMAGE_CACHE_CONTROL = "public, max-age=31536000, immutable"

router = APIRouter()


def _cache_response(cache: AnalysisCache, entry: CacheEntry) -> CacheEntryResponse:
    return CacheEntryResponse(
        hash=entry.hash,
        results=entry.results,
        score=entry.score,
        rejected=entry.rejected,
        created_at=entry.created_at,
        image_id=entry.image_id,
        image_data=to_data_url(cache.image_bytes(entry)),
    )


def _scorers_response(leaderboard: Leaderboard, entries: List[ScorerEntry]) -> List[ScorerResponse]:
    avatars = leaderboard.avatars(entries)
    return [
        ScorerResponse(
            name=e.name,
            score=e.score,
            image_id=e.image_id,
            avatar=to_data_url(avatars.get(e.name)),
        )
        for e in entries
    ]


@router.get("/")
def read_root():
    return {"message": "PicRate backend is running"}


@router.get("/test")
def check_database(request: Request):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": [],
    }

    db: Database = request.app.state.db
    response["database_name"] = db.name
    try:
        db.ping()
        response["connection_status"] = "Connected"
        response["collections"] = db.collection_names()[:10]
        response["database"] = "✅ Connected & Working"
    except PyMongoError as e:
        log.warning("Database health check failed: %s", e)
        response["database"] = f"❌ Error: {str(e)[:50]}"
    return response


@router.get("/cache", response_model=CacheEntryResponse)
def get_cached(request: Request, image_hash: Optional[str] = Query(None, alias="hash")):
    if not image_hash:
        raise ValidationError("No hash provided")

    cache: AnalysisCache = request.app.state.cache
    entry = cache.lookup(image_hash)
    if entry is None:
        raise NotFoundError("Not found in cache")
    return _cache_response(cache, entry)


@router.post("/cache", response_model=CacheEntryResponse)
async def analyze_image(request: Request):
    form = await request.form()
    image = form.get("image")
    if image is None:
        raise ValidationError("No file uploaded")
    if not isinstance(image, FormFile):
        raise ValidationError("Invalid data: image must be a file upload")
    content = await image.read()
    if not content:
        raise ValidationError("Uploaded file is empty")

    cache: AnalysisCache = request.app.state.cache
    entry = await run_in_threadpool(cache.get_or_compute, content)
    return _cache_response(cache, entry)


@router.get("/topScorers", response_model=List[ScorerResponse])
def get_top_scorers(request: Request):
    leaderboard: Leaderboard = request.app.state.leaderboard
    return _scorers_response(leaderboard, leaderboard.top_entries())


@router.post("/topScorers", response_model=List[ScorerResponse])
async def submit_score(request: Request):
    form = await request.form()
    name = form.get("name")
    score = form.get("score")
    source_hash = form.get("hash")
    image = form.get("image")

    for value in (name, score, source_hash):
        if not isinstance(value, str) or not value.strip():
            raise ValidationError("Invalid data")
    if image is None:
        raise ValidationError("Invalid data")

    # The browser sends either the file itself or a data: URL taken from a canvas.
    if isinstance(image, FormFile):
        avatar = await image.read()
    elif image.startswith("data:"):
        avatar = decode_inline(image)
    else:
        raise ValidationError("Invalid image format")

    leaderboard: Leaderboard = request.app.state.leaderboard
    entries = await run_in_threadpool(leaderboard.submit, name, score, avatar, source_hash)
    return _scorers_response(leaderboard, entries)


@router.get("/images/{image_id}")
def get_image(request: Request, image_id: str):
    images: ImageStore = request.app.state.images
    data = images.get(image_id)
    if data is None:
        raise NotFoundError("Image not found")
    return Response(content=data, media_type="image/jpeg", headers={"Cache-Control": IMAGE_CACHE_CONTROL})


async def picrate_error_handler(request: Request, exc: PicRateError):
    if exc.status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc)
        return JSONResponse(status_code=exc.status_code, content={"error": "Internal server error"})
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def storage_error_handler(request: Request, exc: PyMongoError):
    log.error("%s %s: database error: %s", request.method, request.url.path, exc, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(database: Optional[Database] = None, rating: Optional[RatingService] = None) -> FastAPI:
    """Build the API. The database is connected at startup unless one is passed in."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = database or Database.connect(config.DATABASE_URL, config.DATABASE_NAME)
        db.ensure_indexes()
        images = ImageStore(db)
        app.state.db = db
        app.state.images = images
        app.state.cache = AnalysisCache(db, images, rating or GeminiRatingService())
        app.state.leaderboard = Leaderboard(db, images)
        try:
            yield
        finally:
            if database is None:
                db.close()

    app = FastAPI(title="PicRate API", version="1.0.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(PicRateError, picrate_error_handler)
    app.add_exception_handler(PyMongoError, storage_error_handler)
    app.include_router(router)
    return app


config.configure_logging()
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
