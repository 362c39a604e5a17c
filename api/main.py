from fastapi import FastAPI, Depends, Response, Request, UploadFile, File
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from contextlib import asynccontextmanager
from typing import List
import asyncio
import os
import time
from db.session import get_db, AsyncSessionLocal
from core.config import settings
from core.exceptions import QuizAppError, ValidationError
from core.logger import logger
from services.media_service import build_media_store
from services.quiz_service import QuizService
from services.repository import QuizRepository
from services.retention_service import RetentionSweeper
from services.user_service import UserService
from api.schemas import (
    UserCreate, UserOut, QuizCreate, QuizPublic, QuizDetail, QuestionAdd, QuestionOut,
    AttemptCreate, AttemptOut, AttemptList, AttemptEnvelope, VerifyRequest, VerifyResponse,
    UploadResponse,
)

# API Documentation
API_DESCRIPTION = """
## Personality Quiz API

Create a five-question quiz about yourself, share it by link or access code, and follow
the results on a private dashboard.

### Access

There are no accounts. A quiz is reachable by its **access code** or **URL slug**; its
results by the **dashboard token** returned once at creation.

### Retention

Quizzes are available for 7 days after creation. After that, reads return `410 Gone`
and a daily cleanup removes the quiz, its questions, attempts and images.
"""

TAGS_METADATA = [
    {"name": "users", "description": "Anonymous creator registration."},
    {"name": "quizzes", "description": "Quiz creation and lookup by id, code, slug or dashboard token."},
    {"name": "questions", "description": "Questions and server-side answer verification."},
    {"name": "attempts", "description": "Completed attempts and results. Never cached."},
    {"name": "media", "description": "Question image uploads."},
]

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.media_store = build_media_store()
    sweeper = None
    if settings.CLEANUP_ENABLED:
        sweeper = RetentionSweeper(AsyncSessionLocal, app.state.media_store)
        sweeper.start()
    app.state.sweeper = sweeper
    try:
        yield
    finally:
        if sweeper:
            sweeper.stop()
        await app.state.media_store.close()


app = FastAPI(
    title="Personality Quiz API",
    description=API_DESCRIPTION,
    version="1.0.0",
    openapi_tags=TAGS_METADATA,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


def _is_attempt_path(path: str) -> bool:
    path = path.rstrip("/")
    return path.startswith(f"{settings.API_PREFIX}/quiz-attempts") or path.endswith("/attempts")


@app.middleware("http")
async def add_cache_headers(request: Request, call_next):
    try:
        response = await asyncio.wait_for(call_next(request), timeout=settings.REQUEST_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.error("Request timed out", path=request.url.path, timeout=settings.REQUEST_TIMEOUT_SECONDS)
        response = JSONResponse(status_code=503, content={"message": "Request timed out", "error": "TIMEOUT"})

    # Attempt counts change constantly; never let an intermediary serve them stale
    if _is_attempt_path(request.url.path):
        for header, value in NO_CACHE_HEADERS.items():
            response.headers[header] = value

    return response

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# === Error handlers ===

@app.exception_handler(QuizAppError)
async def handle_quiz_app_error(request: Request, exc: QuizAppError):
    if exc.status_code >= 500:
        logger.error("Request failed", path=request.url.path, error=exc.code, message=exc.message,
                     details=exc.details)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError):
    logger.info("Invalid request data", path=request.url.path)
    body = ValidationError("Invalid request data", code="INVALID_REQUEST", details=exc.errors()).to_dict()
    return JSONResponse(status_code=400, content=jsonable_encoder(body))


@app.exception_handler(SQLAlchemyError)
async def handle_database_error(request: Request, exc: SQLAlchemyError):
    logger.error("Database error", path=request.url.path, error=str(exc), exc_info=exc)
    return JSONResponse(status_code=500, content={"message": "Database error", "error": "DATABASE_ERROR"})


# === Dependencies ===

def get_repository(db: AsyncSession = Depends(get_db)) -> QuizRepository:
    return QuizRepository(db)


def get_quiz_service(repo: QuizRepository = Depends(get_repository)) -> QuizService:
    return QuizService(repo)


def get_user_service(repo: QuizRepository = Depends(get_repository)) -> UserService:
    return UserService(repo)


def get_media_store(request: Request):
    return request.app.state.media_store


def server_time() -> int:
    return int(time.time() * 1000)


# === Users ===

@app.post(
    f"{settings.API_PREFIX}/users",
    response_model=UserOut,
    status_code=201,
    tags=["users"],
    summary="Register or reuse a creator",
    responses={200: {"description": "Username already registered, existing user returned"}},
)
async def create_user(payload: UserCreate, response: Response, service: UserService = Depends(get_user_service)):
    user, is_new = await service.get_or_create_user(payload.username)
    if not is_new:
        response.status_code = 200
    return user


# === Quizzes ===

@app.post(
    f"{settings.API_PREFIX}/quizzes",
    response_model=QuizDetail,
    status_code=201,
    tags=["quizzes"],
    summary="Create quiz",
    description="Creates a quiz and all of its questions atomically and returns its identifiers, "
                "including the dashboard token.",
    responses={400: {"description": "Invalid quiz, empty or placeholder creator name"}},
)
async def create_quiz(payload: QuizCreate, service: QuizService = Depends(get_quiz_service)):
    return await service.create_quiz(
        payload.creator_id,
        payload.creator_name,
        [q.to_input() for q in payload.questions],
    )


@app.get(f"{settings.API_PREFIX}/quizzes", response_model=List[QuizPublic], tags=["quizzes"], summary="List quizzes")
async def list_quizzes(service: QuizService = Depends(get_quiz_service)):
    return await service.list_quizzes()


@app.get(
    f"{settings.API_PREFIX}/quizzes/code/{{access_code}}",
    response_model=QuizPublic,
    tags=["quizzes"],
    summary="Get quiz by access code",
    responses={404: {"description": "Quiz not found"}, 410: {"description": "Quiz expired"}},
)
async def get_quiz_by_code(access_code: str, service: QuizService = Depends(get_quiz_service)):
    return (await service.get_quiz_by_code(access_code)).unwrap()


@app.get(
    f"{settings.API_PREFIX}/quizzes/slug/{{url_slug}}",
    response_model=QuizPublic,
    tags=["quizzes"],
    summary="Get quiz by URL slug",
    description="Exact match first, then a case-insensitive match.",
    responses={404: {"description": "Quiz not found"}, 410: {"description": "Quiz expired"}},
)
async def get_quiz_by_slug(url_slug: str, service: QuizService = Depends(get_quiz_service)):
    return (await service.get_quiz_by_slug(url_slug)).unwrap()


@app.get(
    f"{settings.API_PREFIX}/quizzes/dashboard/{{token}}",
    response_model=QuizDetail,
    tags=["quizzes"],
    summary="Get quiz by dashboard token",
    responses={404: {"description": "Quiz not found"}, 410: {"description": "Quiz expired"}},
)
async def get_quiz_by_token(token: str, service: QuizService = Depends(get_quiz_service)):
    return (await service.get_quiz_by_token(token)).unwrap()


@app.get(
    f"{settings.API_PREFIX}/quizzes/{{quiz_id}}",
    response_model=QuizPublic,
    tags=["quizzes"],
    summary="Get quiz by id",
    responses={400: {"description": "Invalid quiz ID"}, 404: {"description": "Quiz not found"},
               410: {"description": "Quiz expired"}},
)
async def get_quiz(quiz_id: int, service: QuizService = Depends(get_quiz_service)):
    return (await service.get_quiz_by_id(quiz_id)).unwrap()


# === Questions ===

@app.post(
    f"{settings.API_PREFIX}/questions",
    response_model=QuestionOut,
    status_code=201,
    tags=["questions"],
    summary="Add a question to a quiz",
)
async def add_question(payload: QuestionAdd, service: QuizService = Depends(get_quiz_service)):
    return await service.add_question(payload.quiz_id, payload.to_input())


@app.get(
    f"{settings.API_PREFIX}/quizzes/{{quiz_id}}/questions",
    response_model=List[QuestionOut],
    tags=["questions"],
    summary="List quiz questions in order",
)
async def list_questions(quiz_id: int, service: QuizService = Depends(get_quiz_service)):
    return await service.list_questions(quiz_id)


@app.post(
    f"{settings.API_PREFIX}/questions/{{question_id}}/verify",
    response_model=VerifyResponse,
    tags=["questions"],
    summary="Verify an answer",
    responses={404: {"description": "Question not found"}},
)
async def verify_answer(question_id: int, payload: VerifyRequest, service: QuizService = Depends(get_quiz_service)):
    return {"is_correct": await service.verify(question_id, payload.answer)}


# === Attempts ===

@app.post(
    f"{settings.API_PREFIX}/quiz-attempts",
    response_model=AttemptOut,
    status_code=201,
    tags=["attempts"],
    summary="Record a completed attempt",
    description="The score is recomputed from the stored correct answers; a submitted score is ignored.",
)
async def create_attempt(payload: AttemptCreate, service: QuizService = Depends(get_quiz_service)):
    return await service.record_attempt(
        payload.quiz_id,
        payload.taker_name,
        [a.to_input() for a in payload.answers],
        claimed_score=payload.score,
    )


@app.get(
    f"{settings.API_PREFIX}/quizzes/{{quiz_id}}/attempts",
    response_model=AttemptList,
    tags=["attempts"],
    summary="List attempts, newest first",
)
async def list_attempts(quiz_id: int, service: QuizService = Depends(get_quiz_service)):
    attempts = await service.list_attempts(quiz_id)
    return {"data": attempts, "server_time": server_time(), "count": len(attempts)}


@app.get(
    f"{settings.API_PREFIX}/quiz-attempts/{{attempt_id}}",
    response_model=AttemptEnvelope,
    tags=["attempts"],
    summary="Get one attempt",
    responses={404: {"description": "Quiz attempt not found"}},
)
async def get_attempt(attempt_id: int, service: QuizService = Depends(get_quiz_service)):
    return {"data": await service.get_attempt(attempt_id), "server_time": server_time()}


# === Media ===

@app.post(
    f"{settings.API_PREFIX}/upload",
    response_model=UploadResponse,
    tags=["media"],
    summary="Upload a question image",
    responses={400: {"description": "No file or unsupported type"}, 500: {"description": "Upload failed"}},
)
async def upload_image(image: UploadFile = File(None), media_store=Depends(get_media_store)):
    if image is None or not image.filename:
        raise ValidationError.for_field("image", "No file uploaded", code="NO_FILE")

    ext = os.path.splitext(image.filename)[1].lstrip(".").lower()
    if ext not in settings.ALLOWED_IMAGE_EXTENSIONS or not (image.content_type or "").startswith("image/"):
        allowed = ", ".join(settings.ALLOWED_IMAGE_EXTENSIONS)
        raise ValidationError.for_field(
            "image", f"Only image files ({allowed}) are allowed!", code="UNSUPPORTED_FILE_TYPE"
        )

    data = await image.read(settings.UPLOAD_MAX_BYTES + 1)
    if len(data) > settings.UPLOAD_MAX_BYTES:
        raise ValidationError.for_field("image", "File is too large", code="FILE_TOO_LARGE")
    if not data:
        raise ValidationError.for_field("image", "Uploaded file is empty", code="NO_FILE")

    logger.info("Processing uploaded image", filename=image.filename, size=len(data))
    return {"image_url": await media_store.upload_image(data, image.filename)}


# Local media is served by the API itself; in production Nginx or the CDN should serve it
if settings.MEDIA_BACKEND == "local":
    app.mount(settings.MEDIA_URL_PREFIX, StaticFiles(directory=settings.MEDIA_ROOT, check_dir=False), name="media")
