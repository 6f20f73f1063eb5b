from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles

from app.schemas import ChatRequest, ChatResponse, LeadResponse
from assistant.conversation import ConversationManager, build_conversation_manager
from assistant.core.errors import UpstreamError
from config.settings import Settings, get_settings
from leads.intake import Lead, LeadSubmission
from leads.mailer import LeadDeliveryError, LeadMailer, build_lead_mailer


logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s - %(message)s")
logger = logging.getLogger("booking_assistant")

CHAT_FAILED = "Något gick fel med AI-samtalet."
LEAD_FAILED = "Något gick fel med lead."
MAIL_DISABLED_WARNING = "RESEND_API_KEY saknas, lead mottaget men inget mail skickades."

# Message for a rejected body, per route.
REQUIRED_FIELDS = {
    "/chat": "message och sessionId krävs",
    "/lead": "name och phone krävs",
}

DEV_ENVS = {"dev", "development", "local"}


def cors_origins(settings: Settings) -> List[str]:
    # Any local frontend during development; the widget's host(s) otherwise.
    if settings.app_env.lower() in DEV_ENVS:
        return ["*"]
    return list(settings.cors_allow_origins)


def mount_static(target: FastAPI, directory: Optional[str]) -> bool:
    if not directory or not Path(directory).is_dir():
        return False
    # Mounted last so the API routes take precedence.
    target.mount("/", StaticFiles(directory=directory, html=True), name="static")
    return True


app = FastAPI(title="Booking Assistant", version="1.0.0")

settings = get_settings()
origins = cors_origins(settings)
if origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@lru_cache(maxsize=1)
def _conversation_manager() -> ConversationManager:
    # Sessions live as long as this manager, i.e. the process.
    return build_conversation_manager(get_settings())


def get_conversation_manager() -> ConversationManager:
    try:
        return _conversation_manager()
    except RuntimeError as e:
        logger.error("Chat unavailable: %s", e)
        raise HTTPException(status_code=500, detail=CHAT_FAILED)


@lru_cache(maxsize=1)
def get_lead_mailer() -> LeadMailer:
    return build_lead_mailer(get_settings())


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info("REQ: %s %s", request.method, request.url.path)
    return await call_next(request)


@app.exception_handler(RequestValidationError)
async def reject_invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info(
        "Rejected body on %s: %s",
        request.url.path,
        [".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()],
    )
    detail = REQUIRED_FIELDS.get(request.url.path, "Ogiltig förfrågan")
    return JSONResponse(status_code=400, content={"detail": detail})


@app.post("/chat", response_model=ChatResponse)
async def chat(
    req: ChatRequest,
    manager: ConversationManager = Depends(get_conversation_manager),
) -> ChatResponse:
    logger.info("Incoming chat: session=%s message_len=%s", req.session_id, len(req.message))
    try:
        result = await manager.handle_chat_turn(req.session_id, req.message)
    except UpstreamError as e:
        logger.warning("Completion service failed for session=%s: %s", req.session_id, e)
        raise HTTPException(status_code=502, detail=CHAT_FAILED)
    except Exception as e:
        logger.exception("Chat processing failed: %s", e)
        raise HTTPException(status_code=500, detail=CHAT_FAILED)

    logger.info(
        "Model responded: session=%s chars=%s fallback=%s",
        req.session_id,
        len(result.reply),
        result.fallback,
    )
    return ChatResponse(reply=result.reply)


@app.post("/lead", response_model=LeadResponse, response_model_exclude_none=True)
def lead(
    submission: LeadSubmission,
    mailer: LeadMailer = Depends(get_lead_mailer),
) -> LeadResponse:
    record = Lead.from_submission(submission)
    logger.info("NEW LEAD: %s", json.dumps(record.as_payload(), ensure_ascii=False, indent=2))

    if not mailer.enabled:
        logger.warning("Lead accepted without email: RESEND_API_KEY not configured")
        return LeadResponse(warning=MAIL_DISABLED_WARNING)

    try:
        mailer.send(record)
    except LeadDeliveryError as e:
        logger.error("Lead delivery failed for customer=%s: %s", record.customer_id, e)
        raise HTTPException(status_code=500, detail=LEAD_FAILED)
    return LeadResponse()


@app.get("/healthz", response_class=PlainTextResponse)
def healthz() -> str:
    return "ok"


@app.get("/health")
def health():
    return {"status": "ok"}


mount_static(app, settings.static_dir)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.port)
