#!/usr/bin/env python3
"""
HTTP API for the math quiz front end.

Serves quiz generation, the chat tutor, settings and attempt history to the
browser client. All state lives in the local key-value store.

Run with:
  python quiz_server.py
"""
import logging
import time
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from mathquiz.chat import ChatTutor, apology_for
from mathquiz.config import load_provider_config, save_provider_config, settings
from mathquiz.curriculum import CURRICULUM, resolve_topic
from mathquiz.exceptions import (
    ConnectionFailed,
    MissingCredential,
    ProviderExhausted,
    QuizServiceError,
    StoreUnreadable,
    TotalGenerationFailure,
)
from mathquiz.generator import QuestionSetGenerator
from mathquiz.history import QuizHistory
from mathquiz.models import ChatMessage, EducationLevel, QuizAttemptRecord
from mathquiz.storage import JsonFileKeyValueStore, KeyValueStore

logger = logging.getLogger("mathquiz.server")

app = FastAPI(title="Math Quiz Tutor Service")

_store: Optional[KeyValueStore] = None


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every request with its status and duration."""
    start_time = time.time()
    response = await call_next(request)

    extra_fields = {
        "method": request.method,
        "path": request.url.path,
        "status_code": response.status_code,
        "duration_ms": round((time.time() - start_time) * 1000, 2),
    }
    if response.status_code >= 500:
        logger.error("Server error response", extra=extra_fields)
    elif response.status_code >= 400:
        logger.warning("Client error response", extra=extra_fields)
    else:
        logger.info("Request completed", extra=extra_fields)
    return response


@app.exception_handler(StoreUnreadable)
async def store_unreadable_handler(request: Request, exc: StoreUnreadable):
    """Refuse the request rather than replace an unreadable store."""
    logger.error(str(exc))
    return JSONResponse(status_code=500, content={"detail": exc.user_message})


class QuizRequest(BaseModel):
    """Request model for generating a quiz."""

    level: EducationLevel
    grade: int
    topic: str = ""
    custom_topic: Optional[str] = None


class QuizResponse(BaseModel):
    """Response model for a generated quiz."""

    level: EducationLevel
    grade: int
    topic: str
    questions: List[Dict[str, Any]]
    failed_tiers: List[str]


class ChatRequestBody(BaseModel):
    """Request model for one chat turn."""

    history: List[ChatMessage] = Field(default_factory=list)
    message: str = ""
    image: Optional[str] = None


class ChatReply(BaseModel):
    """The tutor's reply, always model-authored."""

    role: str = "model"
    text: str


class SettingsBody(BaseModel):
    """Settings submitted from the settings screen."""

    api_key: str
    model: str = settings.default_model


class SettingsView(BaseModel):
    """Settings as shown to the client; the key itself is never returned."""

    has_api_key: bool
    model: str


def get_store() -> KeyValueStore:
    """Process-wide key-value store, created on first use."""
    global _store
    if _store is None:
        _store = JsonFileKeyValueStore(settings.storage_path)
    return _store


def get_generator() -> QuestionSetGenerator:
    return QuestionSetGenerator(
        fallback_models=settings.fallback_models,
        temperature=settings.generation_temperature,
        attempt_timeout_seconds=settings.attempt_timeout_seconds,
    )


def get_tutor() -> ChatTutor:
    return ChatTutor(
        fallback_models=settings.fallback_models,
        temperature=settings.generation_temperature,
        attempt_timeout_seconds=settings.attempt_timeout_seconds,
    )


def _status_for(error: QuizServiceError) -> int:
    if isinstance(error, MissingCredential):
        return 400
    if isinstance(error, ProviderExhausted):
        return 429
    if isinstance(error, (ConnectionFailed, TotalGenerationFailure)):
        return 502
    return 500


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "math-quiz-tutor"}


@app.get("/curriculum")
async def get_curriculum():
    """Grades and suggested topics for every education level."""
    return {
        level.value: {str(grade): topics for grade, topics in grades.items()}
        for level, grades in CURRICULUM.items()
    }


@app.get("/settings", response_model=SettingsView)
async def read_settings(store: KeyValueStore = Depends(get_store)):
    config = load_provider_config(store)
    return SettingsView(
        has_api_key=bool(config.api_key),
        model=config.preferred_model or settings.default_model,
    )


@app.put("/settings", response_model=SettingsView)
async def update_settings(
    body: SettingsBody, store: KeyValueStore = Depends(get_store)
):
    if not body.api_key.strip():
        raise HTTPException(status_code=422, detail="API key must not be empty")
    save_provider_config(store, body.api_key, body.model)
    return SettingsView(has_api_key=True, model=body.model.strip())


@app.post("/quiz", response_model=QuizResponse)
async def create_quiz(
    request: QuizRequest,
    store: KeyValueStore = Depends(get_store),
    generator: QuestionSetGenerator = Depends(get_generator),
):
    """
    Generate a 20-question quiz.

    A partially generated quiz is still returned; `failed_tiers` lists the
    difficulty tiers that could not be generated.
    """
    try:
        topic = resolve_topic(request.topic, request.custom_topic)
        result = await generator.generate_set(
            request.level, request.grade, topic, load_provider_config(store)
        )
    except QuizServiceError as e:
        logger.error(f"Quiz generation failed: {e}")
        raise HTTPException(status_code=_status_for(e), detail=e.user_message)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return QuizResponse(
        level=request.level,
        grade=request.grade,
        topic=topic,
        questions=[q.model_dump(mode="json", by_alias=True) for q in result.questions],
        failed_tiers=[d.value for d in result.failed_tiers],
    )


@app.post("/chat", response_model=ChatReply)
async def chat(
    body: ChatRequestBody,
    store: KeyValueStore = Depends(get_store),
    tutor: ChatTutor = Depends(get_tutor),
):
    """One tutor turn. Failures come back as the tutor's apology, not an HTTP error."""
    try:
        text = await tutor.reply(
            body.history, body.message, load_provider_config(store), body.image
        )
    except QuizServiceError as e:
        logger.warning(f"Chat failed: {e}")
        text = apology_for(e)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return ChatReply(text=text)


@app.get("/history")
async def list_history(store: KeyValueStore = Depends(get_store)):
    return [r.to_storage() for r in QuizHistory(store).list()]


@app.post("/history", status_code=201)
async def add_history(
    record: QuizAttemptRecord, store: KeyValueStore = Depends(get_store)
):
    QuizHistory(store).append(record)
    return record.to_storage()


@app.delete("/history", status_code=204)
async def clear_history(store: KeyValueStore = Depends(get_store)):
    QuizHistory(store).clear()


if __name__ == "__main__":
    import uvicorn

    from mathquiz.logging_config import setup_logging

    setup_logging(
        log_level=settings.log_level,
        log_file=settings.log_file,
        json_output=settings.env == "production",
    )
    uvicorn.run(app, host=settings.host, port=settings.port)
