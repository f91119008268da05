"""
portal_core.chatbot.assistant
=============================

Flujo de conversación del asistente virtual.

Cada mensaje del ciudadano:
1. Se valida (no vacío, máximo 1000 caracteres) y pasa por el rate limiter.
2. Se asocia a una sesión de chat (se crea si el token no existe o venció).
3. Se guarda y se busca contexto relevante en la base de conocimiento.
4. Se genera la respuesta con el historial reciente de la sesión.
5. Si la confianza queda por debajo del umbral se marca para derivar a un
   funcionario.

Errores
-------
Todas las validaciones levantan subclases de `ChatError` (que a su vez es
`ValueError`), cada una con el `status_code` HTTP que le corresponde.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..config import get_settings
from ..db.models import CHAT_CHANNELS, FEEDBACK_TYPES, ChatFeedback, ChatMessage, ChatSession
from ..llm_client import generate_chat_response
from .knowledge import hybrid_search
from .rate_limit import RateLimiter, client_identifier, get_rate_limiter

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 1000
MAX_COMMENT_LENGTH = 500
HISTORY_MESSAGES = 10
SESSION_INFO_MESSAGES = 20


class ChatError(ValueError):
    """Error de validación del chat (HTTP 400)."""

    status_code = 400


class RateLimitExceeded(ChatError):
    status_code = 429


class ChatNotFound(ChatError):
    status_code = 404


class FeedbackConflict(ChatError):
    status_code = 409


@dataclass
class ChatRequest:
    message: str
    session_token: Optional[str] = None
    user_id: Optional[str] = None
    channel: str = "web"
    phone_number: Optional[str] = None
    ip: Optional[str] = None


@dataclass
class ChatResult:
    response: str
    confidence: float
    sources: List[str] = field(default_factory=list)
    session_token: str = ""
    escalate_to_human: bool = False
    message_id: str = ""


# ============================================================
# Sesiones
# ============================================================

def _is_live(chat_session: ChatSession, now: datetime) -> bool:
    return chat_session.is_active and chat_session.expires_at > now


def create_session(
    session: Session,
    user_id: str | None = None,
    channel: str = "web",
    phone_number: str | None = None,
    session_token: str | None = None,
) -> ChatSession:
    settings = get_settings()
    now = datetime.utcnow()
    chat_session = ChatSession(
        session_token=session_token or str(uuid.uuid4()),
        user_id=user_id,
        channel=channel,
        phone_number=phone_number,
        is_active=True,
        created_at=now,
        updated_at=now,
        expires_at=now + timedelta(hours=settings.chat_session_ttl_hours),
    )
    session.add(chat_session)
    session.flush()
    return chat_session


def get_or_create_session(
    session: Session,
    session_token: str | None,
    user_id: str | None = None,
    channel: str = "web",
    phone_number: str | None = None,
) -> ChatSession:
    """
    Devuelve la sesión viva asociada al token o crea una nueva.

    Una sesión vencida se elimina (con sus mensajes) y una inactiva se conserva;
    en ambos casos se crea otra con token nuevo.
    """
    now = datetime.utcnow()
    if session_token:
        existing = session.query(ChatSession).filter_by(session_token=session_token).first()
        if existing and _is_live(existing, now):
            existing.updated_at = now
            return existing
        if existing:
            if existing.expires_at <= now:
                logger.info(f"Sesión de chat vencida eliminada (token {session_token[:8]}...)")
                session.delete(existing)
                session.flush()
            session_token = None
    return create_session(session, user_id, channel, phone_number, session_token)


def _recent_history(session: Session, chat_session: ChatSession, limit: int) -> List[Dict[str, str]]:
    messages = (
        session.query(ChatMessage)
        .filter(ChatMessage.session_id == chat_session.id, ChatMessage.role.in_(("user", "assistant")))
        .order_by(ChatMessage.created_at.desc())
        .limit(limit)
        .all()
    )
    return [{"role": m.role, "content": m.content} for m in reversed(messages)]


# ============================================================
# Mensajes
# ============================================================

def handle_chat_message(
    session: Session,
    request: ChatRequest,
    limiter: RateLimiter | None = None,
) -> ChatResult:
    """
    Procesa un mensaje del ciudadano y devuelve la respuesta del asistente.

    Raises:
        ChatError: Mensaje vacío, demasiado largo o canal inválido
        RateLimitExceeded: Si el cliente superó el límite de solicitudes
    """
    settings = get_settings()
    message = (request.message or "").strip()
    if not message:
        raise ChatError("El mensaje es requerido")
    if len(message) > MAX_MESSAGE_LENGTH:
        raise ChatError(f"El mensaje es demasiado largo (máximo {MAX_MESSAGE_LENGTH} caracteres)")
    if request.channel not in CHAT_CHANNELS:
        raise ChatError(f"Canal inválido: {request.channel}. Opciones: {', '.join(CHAT_CHANNELS)}")

    limiter = limiter or get_rate_limiter()
    identifier = client_identifier(request.user_id, request.session_token, request.phone_number, request.ip)
    if not limiter.is_allowed(identifier):
        logger.warning(f"Rate limit excedido para {identifier}")
        raise RateLimitExceeded("Demasiadas solicitudes. Intenta nuevamente en unos minutos.")

    chat_session = get_or_create_session(
        session,
        request.session_token,
        user_id=request.user_id,
        channel=request.channel,
        phone_number=request.phone_number,
    )
    history = _recent_history(session, chat_session, HISTORY_MESSAGES)

    user_message = ChatMessage(
        session_id=chat_session.id,
        role="user",
        content=message,
        created_at=datetime.utcnow(),
    )
    session.add(user_message)
    session.flush()

    relevant = hybrid_search(
        session,
        message,
        threshold=settings.chat_similarity_threshold,
        limit=settings.chat_match_count,
    )
    response = generate_chat_response(history + [{"role": "user", "content": message}], relevant)
    escalate = response.confidence < settings.chat_escalation_threshold

    # la respuesta siempre queda después de la pregunta al ordenar por fecha
    answered_at = max(datetime.utcnow(), user_message.created_at + timedelta(microseconds=1))
    assistant_message = ChatMessage(
        created_at=answered_at,
        session_id=chat_session.id,
        role="assistant",
        content=response.content,
        confidence_score=response.confidence,
        escalated_to_human=escalate,
        metadata_json=json.dumps(
            {
                "sources": response.sources,
                "tokens": response.tokens,
                "relevant_content": [
                    {"content_type": r.content_type, "content_id": r.content_id, "similarity": round(r.similarity, 4)}
                    for r in relevant
                ],
            },
            ensure_ascii=False,
        ),
    )
    session.add(assistant_message)
    session.flush()

    if escalate:
        logger.info(f"Conversación {chat_session.session_token[:8]}... marcada para atención humana")

    return ChatResult(
        response=response.content,
        confidence=response.confidence,
        sources=response.sources,
        session_token=chat_session.session_token,
        escalate_to_human=escalate,
        message_id=assistant_message.id,
    )


def _message_to_dict(message: ChatMessage) -> Dict[str, Any]:
    return {
        "id": message.id,
        "role": message.role,
        "content": message.content,
        "confidence_score": message.confidence_score,
        "escalated_to_human": message.escalated_to_human,
        "feedback": message.feedback,
        "metadata": json.loads(message.metadata_json or "{}"),
        "created_at": message.created_at.isoformat(),
    }


def get_session_info(session: Session, session_token: str) -> Dict[str, Any] | None:
    """
    Datos de una sesión viva y sus últimos mensajes (orden cronológico).

    Returns:
        Dict con la sesión y `messages`, o None si no existe o venció
    """
    chat_session = session.query(ChatSession).filter_by(session_token=session_token).first()
    if not chat_session or not _is_live(chat_session, datetime.utcnow()):
        return None

    messages = (
        session.query(ChatMessage)
        .filter(ChatMessage.session_id == chat_session.id)
        .order_by(ChatMessage.created_at.desc())
        .limit(SESSION_INFO_MESSAGES)
        .all()
    )
    return {
        "session": {
            "id": chat_session.id,
            "session_token": chat_session.session_token,
            "channel": chat_session.channel,
            "user_id": chat_session.user_id,
            "created_at": chat_session.created_at.isoformat(),
            "expires_at": chat_session.expires_at.isoformat(),
        },
        "messages": [_message_to_dict(m) for m in reversed(messages)],
    }


# ============================================================
# Feedback
# ============================================================

def submit_feedback(
    session: Session,
    message_id: str,
    feedback_type: str,
    comment: str | None = None,
) -> ChatFeedback:
    """
    Registra la valoración de una respuesta del asistente.

    Raises:
        ChatError: Tipo inválido, comentario largo o mensaje que no es del asistente
        ChatNotFound: Si el mensaje no existe
        FeedbackConflict: Si el mensaje ya tiene feedback
    """
    if not message_id:
        raise ChatError("El id del mensaje es requerido")
    if feedback_type not in FEEDBACK_TYPES:
        raise ChatError(f"Tipo de feedback inválido: {feedback_type}. Opciones: {', '.join(FEEDBACK_TYPES)}")
    comment = (comment or "").strip() or None
    if comment and len(comment) > MAX_COMMENT_LENGTH:
        raise ChatError(f"El comentario es demasiado largo (máximo {MAX_COMMENT_LENGTH} caracteres)")

    message = session.query(ChatMessage).filter_by(id=message_id).first()
    if not message:
        raise ChatNotFound(f"Mensaje {message_id} no encontrado")
    if message.role != "assistant":
        raise ChatError("Solo se pueden valorar respuestas del asistente")
    if session.query(ChatFeedback).filter_by(message_id=message_id).first():
        raise FeedbackConflict("Este mensaje ya tiene feedback registrado")

    feedback = ChatFeedback(
        message_id=message.id,
        session_id=message.session_id,
        feedback_type=feedback_type,
        comment=comment,
    )
    session.add(feedback)
    message.feedback = "helpful" if feedback_type == "helpful" else "not_helpful"
    session.flush()
    return feedback


def cleanup_expired_sessions(session: Session, now: datetime | None = None) -> int:
    """Elimina sesiones vencidas (y sus mensajes). Devuelve cuántas se borraron."""
    now = now or datetime.utcnow()
    expired = session.query(ChatSession).filter(ChatSession.expires_at < now).all()
    for chat_session in expired:
        session.delete(chat_session)
    session.flush()
    if expired:
        logger.info(f"🧹 {len(expired)} sesiones de chat vencidas eliminadas")
    return len(expired)
