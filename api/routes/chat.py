from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from schemas.chat import ChatRequest, ChatResponse, ErrorResponse, SessionRequest, SessionResponse
import logging

from core.errors import AdmissionError, ReasoningUnavailable
from services.chat import ChatService

router = APIRouter()
logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


def _chat_service(req: Request) -> ChatService:
    return req.app.state.chat_service


@router.post("/session", response_model=SessionResponse, responses={500: {"model": ErrorResponse}})
async def start_session(request: SessionRequest, req: Request):
    try:
        return await _chat_service(req).start_session(
            session_id=request.sessionId,
            customer_email=request.customerEmail,
            customer_name=request.customerName,
            page_url=request.pageUrl,
        )
    except Exception:
        logger.exception("Failed to create chat session")
        return _error(500, "Failed to create chat session")


@router.post(
    "/message",
    response_model=ChatResponse,
    responses={code: {"model": ErrorResponse} for code in (400, 404, 429, 500, 503)},
)
async def chat(request: ChatRequest, req: Request):
    logger.info(f"Received chat message for conversation {request.conversationId}")
    try:
        return await _chat_service(req).handle_message(
            session_key=request.sessionId,
            conversation_id=request.conversationId,
            message=request.message,
            preset_action_id=request.presetActionId,
        )
    except AdmissionError as e:
        return _error(e.status_code, str(e))
    except ReasoningUnavailable as e:
        logger.error(f"Reasoning model unavailable: {e}")
        return _error(503, ReasoningUnavailable.user_message)
    except Exception:
        logger.exception("Error generating response")
        return _error(500, ReasoningUnavailable.user_message)
