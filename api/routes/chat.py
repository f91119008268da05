"""
Endpoints del asistente virtual.

- POST /api/v1/chat: Enviar un mensaje al asistente
- GET /api/v1/chat/session?session_token=...: Datos y mensajes de una sesión
- POST /api/v1/chat/feedback: Valorar una respuesta del asistente
- POST /api/v1/chat/knowledge/reindex: Reindexar la base de conocimiento (funcionarios)

Los errores de validación del chat (`ChatError`) traen su propio código HTTP:
400 validación, 404 mensaje inexistente, 409 feedback duplicado y 429 rate limit.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from portal_core.chatbot.assistant import (
    ChatError,
    ChatRequest,
    get_session_info,
    handle_chat_message,
    submit_feedback,
)
from portal_core.chatbot.knowledge import index_knowledge
from portal_core.db.database import get_db_session

from ..dependencies import CurrentUser, get_optional_user, require_permission
from ..models.requests import (
    ChatFeedbackRequest,
    ChatFeedbackResponse,
    ChatMessageRequest,
    ChatMessageResponse,
    ReindexResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/chat", tags=["chat"])


@router.post("", response_model=ChatMessageResponse)
async def chat_endpoint(
    body: ChatMessageRequest,
    request: Request,
    user: Optional[CurrentUser] = Depends(get_optional_user),
):
    """
    Envía un mensaje al asistente y devuelve su respuesta.

    Si no se envía `session_token` (o la sesión venció) se crea una sesión
    nueva y se devuelve su token.

    Raises:
        400: Mensaje vacío o demasiado largo
        429: Demasiadas solicitudes
    """
    chat_request = ChatRequest(
        message=body.message,
        session_token=body.session_token,
        user_id=user.id if user else None,
        channel=body.channel.value,
        phone_number=body.phone_number,
        ip=request.client.host if request.client else None,
    )
    with get_db_session() as session:
        try:
            result = handle_chat_message(session, chat_request)
            return ChatMessageResponse(
                response=result.response,
                confidence=result.confidence,
                sources=result.sources,
                session_token=result.session_token,
                escalate_to_human=result.escalate_to_human,
                message_id=result.message_id,
            )
        except ChatError as e:
            raise HTTPException(status_code=e.status_code, detail=str(e)) from e
        except Exception as e:
            logger.exception("Error procesando mensaje de chat")
            session.rollback()
            raise HTTPException(status_code=500, detail=f"Error interno: {str(e)}") from e


@router.get("/session")
async def get_session_endpoint(session_token: str):
    """
    Devuelve la sesión y sus últimos mensajes.

    Raises:
        404: Si la sesión no existe o venció
    """
    with get_db_session() as session:
        info = get_session_info(session, session_token)
        if not info:
            raise HTTPException(status_code=404, detail="Sesión no encontrada o vencida")
        return info


@router.post("/feedback", response_model=ChatFeedbackResponse, status_code=201)
async def feedback_endpoint(body: ChatFeedbackRequest):
    """
    Registra la valoración de una respuesta del asistente (una por mensaje).

    Raises:
        404: Si el mensaje no existe
        409: Si el mensaje ya tiene feedback
    """
    with get_db_session() as session:
        try:
            feedback = submit_feedback(session, body.message_id, body.feedback_type.value, body.comment)
            return ChatFeedbackResponse(
                id=feedback.id,
                message_id=feedback.message_id,
                feedback_type=feedback.feedback_type,
                created_at=feedback.created_at.isoformat(),
            )
        except ChatError as e:
            raise HTTPException(status_code=e.status_code, detail=str(e)) from e
        except Exception as e:
            session.rollback()
            raise HTTPException(status_code=500, detail=f"Error interno: {str(e)}") from e


@router.post("/knowledge/reindex", response_model=ReindexResponse)
async def reindex_endpoint(
    force: bool = False,
    user: CurrentUser = Depends(require_permission("knowledge.reindex")),
):
    """Reconstruye la base de conocimiento del asistente. Devuelve conteos por tipo."""
    logger.info(f"Reindexando base de conocimiento (force={force}) por {user.email or user.id}")
    with get_db_session() as session:
        counts = index_knowledge(session, force=force)
    return ReindexResponse(counts=counts)
