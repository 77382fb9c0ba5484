"""
Second Brain Server

FastAPI server for the Slack capture webhook, the scheduled digest jobs and
a thin JSON API over the record store.

Endpoints:
- POST /slack/events: Slack webhook endpoint (captures and corrections)
- GET /health: Health check
- GET /cron/daily-digest, GET /cron/weekly-review: Post summaries to Slack
- POST /vocabulary/backfill-examples: Generate missing vocabulary examples
- POST /admin/pin-instructions: Post and pin the quick reference
- /api/...: Records API (list/get/create/update/delete, inbox, vocabulary)

Pipeline:
1. Receive webhook event and verify its signature
2. Parse with the Slack handler
3. Route: top-level message -> Capture Pipeline, `fix:` reply -> Correction Pipeline
4. Process in a background task; the webhook is acknowledged immediately
"""

import asyncio
import hmac
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import BackgroundTasks, Body, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..common.config import BrainConfig, ensure_directories, load_config
from ..common.llm_client import LLMClient
from ..common.record_store import RecordStore
from ..common.schemas import RECORD_MODELS, Destination, InboxStatus
from ..common.slack_client import SlackClient
from ..digest import DigestCollector, ExampleBackfiller, Summarizer
from . import replies
from .classifier import Classifier
from .correction import CorrectionPipeline
from .dedup import PendingMessages
from .handlers import ROUTE_CAPTURE, ROUTE_CORRECTION, Message, SlackHandler
from .pipeline import CapturePipeline

logger = logging.getLogger("brain.capture.server")

# Fields the records API never accepts from clients
_SERVER_FIELDS = {"id", "created_at", "updated_at"}


# Global state
config: Optional[BrainConfig] = None
store: Optional[RecordStore] = None
slack_client: Optional[SlackClient] = None
slack_handler: Optional[SlackHandler] = None
classifier: Optional[Classifier] = None
capture_pipeline: Optional[CapturePipeline] = None
correction_pipeline: Optional[CorrectionPipeline] = None
collector: Optional[DigestCollector] = None
summarizer: Optional[Summarizer] = None
backfiller: Optional[ExampleBackfiller] = None


def init_components(
    cfg: BrainConfig,
    record_store: Optional[RecordStore] = None,
    llm: Optional[LLMClient] = None,
    summary_llm: Optional[LLMClient] = None,
    slack: Optional[SlackClient] = None,
) -> None:
    """Wire every component from config; explicit arguments win"""
    global config, store, slack_client, slack_handler, classifier, capture_pipeline, correction_pipeline
    global collector, summarizer, backfiller

    config = cfg
    store = record_store or RecordStore(cfg.store.path)
    slack_client = slack or SlackClient(bot_token=cfg.slack.bot_token)

    llm = llm or LLMClient.from_config(cfg.llm)
    if llm.is_available:
        logger.info("LLM client ready (%s, %s)", llm.provider, llm.model)
    else:
        logger.warning("LLM client not available, captures will fail until configured")
    summary_llm = summary_llm or (
        LLMClient.from_config(cfg.llm, model=cfg.llm.summary_model)
        if cfg.llm.summary_model else llm
    )

    threshold = cfg.capture.confidence_threshold
    classifier = Classifier(llm, review_threshold=threshold)
    pending = PendingMessages()

    capture_pipeline = CapturePipeline(
        store, classifier, slack_client, pending,
        confidence_threshold=threshold,
        ack_reaction=cfg.slack.ack_reaction,
    )
    correction_pipeline = CorrectionPipeline(store, classifier, slack_client, pending)

    slack_handler = SlackHandler(
        signing_secret=cfg.slack.signing_secret,
        bot_user_id=cfg.slack.bot_user_id,
        capture_channel_id=cfg.slack.capture_channel_id,
    )

    collector = DigestCollector(store)
    summarizer = Summarizer(summary_llm)
    backfiller = ExampleBackfiller(store, summary_llm)

    logger.info(
        "Components ready (threshold: %.2f, pending reviews: %d)",
        threshold, len(store.list_inbox(InboxStatus.NEEDS_REVIEW)),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize components on startup"""
    logger.info("Starting up...")
    ensure_directories()
    init_components(load_config())
    logger.info("Ready to receive events")

    yield

    logger.info("Shutting down...")
    if slack_client:
        await slack_client.close()


app = FastAPI(
    title="Second Brain",
    description="Slack thought capture with LLM classification",
    version="0.1.0",
    lifespan=lifespan
)


# =============================================================================
# Request Models
# =============================================================================

class PinRequest(BaseModel):
    """Pin instructions request"""
    channel_id: Optional[str] = None  # defaults to the capture channel


# =============================================================================
# Helpers
# =============================================================================

def _require_initialized():
    if not store:
        raise HTTPException(status_code=503, detail="Server not initialized")


def _check_secret(provided: Optional[str], secret: str) -> None:
    """401 unless the secret matches; an unset secret disables the check"""
    if not secret:
        return
    if not provided or not hmac.compare_digest(provided, secret):
        raise HTTPException(status_code=401, detail="Unauthorized")


def _check_cron(authorization: Optional[str]) -> None:
    secret = config.security.cron_secret
    _check_secret(authorization, f"Bearer {secret}" if secret else "")


def _destination(table: str) -> Destination:
    try:
        return Destination(table)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown table: {table}")


def _validate_payload(destination: Destination, payload: Dict[str, Any]) -> None:
    model = RECORD_MODELS[destination]
    unknown = set(payload) - set(model.model_fields)
    if unknown:
        raise HTTPException(status_code=422, detail=f"Unknown fields: {sorted(unknown)}")
    protected = set(payload) & _SERVER_FIELDS
    if protected:
        raise HTTPException(status_code=422, detail=f"Fields are read-only: {sorted(protected)}")


def _dump(item) -> Dict[str, Any]:
    return item.model_dump(mode="json")


# =============================================================================
# Background Tasks
# =============================================================================

async def process_message(message: Message):
    """Dispatch a verified Slack message to its pipeline"""
    if not slack_handler or not capture_pipeline:
        logger.warning("Not initialized, skipping message %s", message.timestamp)
        return

    route = slack_handler.route(message)
    if route == ROUTE_CAPTURE:
        result = await capture_pipeline.capture(message)
    elif route == ROUTE_CORRECTION:
        result = await correction_pipeline.correct(message)
    else:
        return

    logger.info("Message %s -> %s (%s)", message.timestamp, route, result.status.value)


# =============================================================================
# Slack
# =============================================================================

@app.get("/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "second-brain",
        "initialized": store is not None,
        "llm_available": classifier.is_available if classifier else False,
        "slack_available": slack_client.is_available if slack_client else False,
        "confidence_threshold": capture_pipeline.confidence_threshold if capture_pipeline else None,
        "pending_reviews": len(store.list_inbox(InboxStatus.NEEDS_REVIEW)) if store else 0,
    }


@app.post("/slack/events")
async def slack_events(
    request: Request,
    background_tasks: BackgroundTasks,
    x_slack_signature: Optional[str] = Header(None),
    x_slack_request_timestamp: Optional[str] = Header(None)
):
    """
    Handle Slack webhook events.

    Always acknowledges authenticated requests so Slack does not redeliver
    while the pipeline is still working.
    """
    if not slack_handler:
        raise HTTPException(status_code=503, detail="Handler not initialized")

    body = await request.body()

    if not slack_handler.verify_signature(
        body,
        x_slack_signature or "",
        x_slack_request_timestamp or ""
    ):
        logger.warning("Rejected Slack request with invalid signature")
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Invalid JSON")

    if slack_handler.is_url_verification(data):
        challenge = slack_handler.get_challenge(data)
        return JSONResponse({"challenge": challenge})

    message = await slack_handler.parse_event(data)

    if message and slack_handler.route(message):
        background_tasks.add_task(process_message, message)

    return JSONResponse({"ok": True})


# =============================================================================
# Scheduled jobs
# =============================================================================

@app.get("/cron/daily-digest")
async def daily_digest(authorization: Optional[str] = Header(None)):
    """Collect, summarize and post the morning digest"""
    _require_initialized()
    _check_cron(authorization)

    channel = config.slack.digest_channel_id
    if not channel:
        raise HTTPException(status_code=500, detail="SLACK_DIGEST_CHANNEL_ID not configured")

    try:
        data = collector.daily()
        text = await asyncio.to_thread(summarizer.daily_digest, data)
        if await slack_client.post_message(channel, text) is None:
            raise RuntimeError("Slack client not available")
    except Exception:
        logger.exception("Failed to generate daily digest")
        raise HTTPException(status_code=500, detail="Failed to generate daily digest")

    return {
        "success": True,
        "message": "Daily digest sent",
        "stats": {
            "active_projects": len(data.active_projects),
            "stalled_projects": len(data.stalled_projects),
            "overdue_admin": len(data.overdue_admin),
            "pending_follow_ups": len(data.pending_follow_ups),
        },
    }


@app.get("/cron/weekly-review")
async def weekly_review(authorization: Optional[str] = Header(None)):
    """Collect, summarize and post the weekly review"""
    _require_initialized()
    _check_cron(authorization)

    channel = config.slack.digest_channel_id
    if not channel:
        raise HTTPException(status_code=500, detail="SLACK_DIGEST_CHANNEL_ID not configured")

    try:
        data = collector.weekly()
        text = await asyncio.to_thread(summarizer.weekly_review, data)
        if await slack_client.post_message(channel, text) is None:
            raise RuntimeError("Slack client not available")
    except Exception:
        logger.exception("Failed to generate weekly review")
        raise HTTPException(status_code=500, detail="Failed to generate weekly review")

    return {
        "success": True,
        "message": "Weekly review sent",
        "stats": {
            "total_captures": data.weekly_activity.total,
            "active_projects": len(data.active_projects),
            "new_people": data.new_people,
            "new_ideas": data.new_ideas,
            "new_vocabulary": data.new_vocabulary,
        },
    }


@app.post("/vocabulary/backfill-examples")
async def backfill_examples(authorization: Optional[str] = Header(None)):
    """Generate example sentences for vocabulary words without one"""
    _require_initialized()
    _check_cron(authorization)

    report = await asyncio.to_thread(backfiller.run)
    return report.to_dict()


@app.post("/admin/pin-instructions")
async def pin_instructions(
    request: Optional[PinRequest] = None,
    x_admin_secret: Optional[str] = Header(None),
):
    """Post the quick-reference message and pin it"""
    _require_initialized()
    _check_secret(x_admin_secret, config.security.admin_secret)

    channel = (request.channel_id if request else None) or config.slack.capture_channel_id
    if not channel:
        raise HTTPException(status_code=400, detail="channel_id is required")

    try:
        ts = await slack_client.post_message(channel, replies.INSTRUCTIONS)
        if ts is None:
            raise RuntimeError("Slack client not available")
        await slack_client.pin_message(channel, ts)
    except Exception:
        logger.exception("Failed to pin instructions in %s", channel)
        raise HTTPException(status_code=500, detail="Failed to pin instructions")

    return {"success": True, "message": "Instructions posted and pinned", "ts": ts}


# =============================================================================
# Records API
# =============================================================================

@app.get("/api/inbox")
async def list_inbox(status: Optional[InboxStatus] = None):
    """Inbox Log entries, newest first, optionally filtered by status"""
    _require_initialized()
    return [_dump(e) for e in store.list_inbox(status)]


@app.get("/api/vocabulary/search")
async def search_vocabulary(q: str = ""):
    _require_initialized()
    return [_dump(w) for w in store.search_vocabulary(q)]


@app.post("/api/admin/{task_id}/done")
async def mark_admin_done(task_id: str):
    _require_initialized()
    task = store.mark_admin_done(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return _dump(task)


@app.post("/api/vocabulary/{word_id}/shown")
async def mark_word_shown(word_id: str):
    _require_initialized()
    word = store.mark_word_shown(word_id)
    if word is None:
        raise HTTPException(status_code=404, detail="Word not found")
    return _dump(word)


@app.get("/api/{table}")
async def list_records(table: str):
    _require_initialized()
    return [_dump(r) for r in store.list(_destination(table))]


@app.post("/api/{table}", status_code=201)
async def create_record(table: str, payload: Dict[str, Any] = Body(...)):
    _require_initialized()
    destination = _destination(table)
    _validate_payload(destination, payload)
    try:
        record = store.create(destination, **payload)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _dump(record)


@app.get("/api/{table}/{record_id}")
async def get_record(table: str, record_id: str):
    _require_initialized()
    record = store.get(_destination(table), record_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Record not found")
    return _dump(record)


@app.patch("/api/{table}/{record_id}")
async def update_record(table: str, record_id: str, payload: Dict[str, Any] = Body(...)):
    _require_initialized()
    destination = _destination(table)
    _validate_payload(destination, payload)
    try:
        record = store.update(destination, record_id, **payload)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    if record is None:
        raise HTTPException(status_code=404, detail="Record not found")
    return _dump(record)


@app.delete("/api/{table}/{record_id}")
async def delete_record(table: str, record_id: str):
    _require_initialized()
    if not store.delete(_destination(table), record_id):
        raise HTTPException(status_code=404, detail="Record not found")
    return {"status": "deleted", "id": record_id}


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_server():
    """Run the Second Brain server"""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    config = load_config()
    port = config.capture.port

    logger.info("Starting server on port %d", port)
    uvicorn.run(
        "brain.capture.server:app",
        host="0.0.0.0",
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()
