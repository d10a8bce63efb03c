import logging
import os
from typing import List

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .analysis_job import ingest_words, process_analysis_job
from .config import load_settings
from .llm_client import build_text_generator
from .models import (
    AnalyzeResponse,
    AnalyzeSummary,
    ConversationResponse,
    IngestTokensRequest,
    IngestTokensResponse,
    UpdateStatusRequest,
)
from .pipeline import EmptyTranscriptError, TranscriptInputError
from .result_store import ResultStoreError, build_result_store, result_file_name
from .session_preview import build_session_preview
from .storage import build_conversation_store


logger = logging.getLogger("uvicorn.error")

app = FastAPI(title="Speech Coach Analysis Backend")
settings = load_settings()
generator = build_text_generator(settings)
conversation_store = build_conversation_store()
result_store = build_result_store()

frontend_origins = os.getenv(
    "FRONTEND_ORIGINS",
    "http://localhost:5173,http://127.0.0.1:5173",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in frontend_origins.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _to_conversation_response(record) -> ConversationResponse:
    return ConversationResponse(
        conversation_id=record.conversation_id,
        timestamp=record.timestamp,
        status=record.status,
    )


@app.get("/health")
def health() -> dict:
    return {
        "status": "ok",
        "storage": conversation_store.storage_name,
        "results": result_store.storage_name,
        "llm_provider": generator.name,
    }


@app.post("/api/conversations/{conversation_id}/tokens", response_model=IngestTokensResponse)
def ingest_conversation_tokens(conversation_id: str, payload: IngestTokensRequest) -> IngestTokensResponse:
    outcome = ingest_words(conversation_store, conversation_id, payload.words, payload.timestamp)
    return IngestTokensResponse(
        success=True,
        conversation_id=conversation_id,
        new_tokens=outcome.new_tokens,
        all_tokens=outcome.all_tokens,
        full_transcript=outcome.full_transcript,
        token_count=len(outcome.all_tokens),
    )


def _run_analysis(conversation_id=None) -> AnalyzeResponse:
    try:
        outcome = process_analysis_job(
            conversation_store,
            result_store,
            conversation_id,
            generator=generator,
            settings=settings,
        )
    except EmptyTranscriptError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except TranscriptInputError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except ResultStoreError as exc:
        logger.error("conversation_id=%s analysis_upload_failed", conversation_id, exc_info=True)
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    result = outcome.result
    return AnalyzeResponse(
        success=True,
        conversation_id=outcome.conversation_id,
        file_name=outcome.file_name,
        summary=AnalyzeSummary(
            segments=len(result.segments),
            issues=len(result.issues),
            metrics=result.metrics,
        ),
        total_time_ms=outcome.total_time_ms,
    )


@app.post("/api/conversations/{conversation_id}/analyze", response_model=AnalyzeResponse)
def analyze_conversation(conversation_id: str) -> AnalyzeResponse:
    return _run_analysis(conversation_id)


@app.post("/api/analyze", response_model=AnalyzeResponse)
def analyze_latest_conversation() -> AnalyzeResponse:
    return _run_analysis()


@app.get("/api/conversations/{conversation_id}/analysis")
def get_conversation_analysis(conversation_id: str) -> JSONResponse:
    try:
        payload = result_store.load(conversation_id)
    except ResultStoreError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    if payload is None:
        raise HTTPException(status_code=404, detail=f"Analysis not found: {result_file_name(conversation_id)}")
    return JSONResponse(content=payload)


@app.get("/api/analysis/latest")
def get_latest_analysis() -> JSONResponse:
    try:
        latest = result_store.load_latest()
    except ResultStoreError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    if latest is None:
        raise HTTPException(status_code=404, detail="No analysis results found.")
    file_name, payload = latest
    return JSONResponse(
        content=payload,
        headers={"Content-Disposition": f'inline; filename="{file_name}"'},
    )


def _preview(conversation_id=None) -> dict:
    try:
        preview = build_session_preview(conversation_store, conversation_id)
    except EmptyTranscriptError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return preview.to_json_dict()


@app.get("/api/conversations/{conversation_id}/preview")
def get_conversation_preview(conversation_id: str) -> dict:
    return _preview(conversation_id)


@app.get("/api/preview/latest")
def get_latest_preview() -> dict:
    return _preview()


@app.get("/api/conversations", response_model=List[ConversationResponse])
def list_conversations() -> List[ConversationResponse]:
    return [_to_conversation_response(record) for record in conversation_store.list_conversations()]


@app.post("/api/conversations/status", response_model=List[ConversationResponse])
def update_conversation_status(payload: UpdateStatusRequest) -> List[ConversationResponse]:
    target_id = payload.conversation_id
    if not target_id:
        existing = conversation_store.list_conversations()
        if not existing:
            raise HTTPException(status_code=404, detail="No existing conversations found to update.")
        target_id = existing[0].conversation_id

    record = conversation_store.set_status(target_id, payload.status)
    logger.info("conversation_id=%s status_updated status=%s", record.conversation_id, record.status)
    return [_to_conversation_response(record) for record in conversation_store.list_conversations()]
