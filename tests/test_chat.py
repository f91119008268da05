"""
Tests del asistente virtual: sesiones, mensajes, feedback y rate limiting.
"""

from datetime import datetime, timedelta

import pytest

from portal_core.chatbot.assistant import (
    ChatError,
    ChatNotFound,
    ChatRequest,
    FeedbackConflict,
    RateLimitExceeded,
    cleanup_expired_sessions,
    create_session,
    get_or_create_session,
    get_session_info,
    handle_chat_message,
    submit_feedback,
)
from portal_core.chatbot.rate_limit import RateLimiter, client_identifier
from portal_core.db.models import ChatMessage, ChatSession


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def limiter():
    return RateLimiter(max_requests=100, window_seconds=60)


def _user_message(session, session_token):
    chat_session = session.query(ChatSession).filter_by(session_token=session_token).first()
    return next(m for m in chat_session.messages if m.role == "user")


@pytest.mark.parametrize(
    "message, error",
    [
        ("   ", "requerido"),
        ("x" * 1001, "demasiado largo"),
    ],
)
def test_handle_chat_message_valida_mensaje(session, limiter, message, error):
    with pytest.raises(ChatError, match=error) as exc:
        handle_chat_message(session, ChatRequest(message=message), limiter)
    assert exc.value.status_code == 400


def test_handle_chat_message_canal_invalido(session, limiter):
    with pytest.raises(ChatError, match="Canal inválido"):
        handle_chat_message(session, ChatRequest(message="Hola", channel="telegram"), limiter)


def test_handle_chat_message_crea_sesion_y_guarda_mensajes(session, limiter):
    result = handle_chat_message(session, ChatRequest(message="¿Cuál es el horario de atención?"), limiter)
    assert result.session_token
    assert result.response
    assert 0.1 <= result.confidence <= 1.0
    assert result.message_id

    info = get_session_info(session, result.session_token)
    assert [m["role"] for m in info["messages"]] == ["user", "assistant"]
    assert info["messages"][1]["id"] == result.message_id


def test_handle_chat_message_reutiliza_sesion(session, limiter):
    first = handle_chat_message(session, ChatRequest(message="Hola"), limiter)
    second = handle_chat_message(session, ChatRequest(message="Gracias", session_token=first.session_token), limiter)
    assert second.session_token == first.session_token

    info = get_session_info(session, first.session_token)
    assert [m["content"] for m in info["messages"] if m["role"] == "user"] == ["Hola", "Gracias"]


def test_sesion_vencida_se_reemplaza(session):
    old = create_session(session)
    old.expires_at = datetime.utcnow() - timedelta(minutes=1)
    session.flush()

    old_token = old.session_token

    new = get_or_create_session(session, old_token)
    assert new.session_token != old_token
    assert get_session_info(session, old_token) is None
    assert session.query(ChatSession).filter_by(session_token=old_token).first() is None


def test_sesion_inactiva_se_conserva(session):
    old = create_session(session)
    old.is_active = False
    session.flush()

    new = get_or_create_session(session, old.session_token)
    assert new.session_token != old.session_token
    assert session.query(ChatSession).filter_by(session_token=old.session_token).first() is not None


def test_token_desconocido_se_conserva(session):
    chat_session = get_or_create_session(session, "token-del-cliente-123")
    assert chat_session.session_token == "token-del-cliente-123"
    assert chat_session.expires_at > datetime.utcnow()


def test_rate_limiter_ventana_deslizante():
    clock = FakeClock()
    limiter = RateLimiter(max_requests=2, window_seconds=10, clock=clock)

    assert limiter.is_allowed("ip:1")
    assert limiter.is_allowed("ip:1")
    assert not limiter.is_allowed("ip:1")
    assert limiter.is_allowed("ip:2")
    assert limiter.remaining("ip:1") == 0

    clock.now += 11
    assert limiter.remaining("ip:1") == 2
    assert limiter.is_allowed("ip:1")


def test_handle_chat_message_rate_limit(session):
    limiter = RateLimiter(max_requests=1, window_seconds=60)
    request = ChatRequest(message="Hola", ip="10.0.0.1")
    handle_chat_message(session, request, limiter)
    with pytest.raises(RateLimitExceeded) as exc:
        handle_chat_message(session, request, limiter)
    assert exc.value.status_code == 429


def test_client_identifier_prioridad():
    assert client_identifier("u1", "tok", "300", "1.2.3.4") == "user:u1"
    assert client_identifier(None, "tok", "300", "1.2.3.4") == "session:tok"
    assert client_identifier(None, None, "300", "1.2.3.4") == "phone:300"
    assert client_identifier() == "ip:unknown"


def test_submit_feedback(session, limiter):
    result = handle_chat_message(session, ChatRequest(message="¿Cómo pago el predial?"), limiter)

    feedback = submit_feedback(session, result.message_id, "report_issue", "  La respuesta no aplica  ")
    assert feedback.comment == "La respuesta no aplica"
    message = session.query(ChatMessage).filter_by(id=result.message_id).first()
    assert message.feedback == "not_helpful"

    with pytest.raises(FeedbackConflict) as exc:
        submit_feedback(session, result.message_id, "helpful")
    assert exc.value.status_code == 409


def test_submit_feedback_errores(session, limiter):
    result = handle_chat_message(session, ChatRequest(message="Hola"), limiter)

    with pytest.raises(ChatNotFound):
        submit_feedback(session, "no-existe", "helpful")
    with pytest.raises(ChatError, match="Tipo de feedback inválido"):
        submit_feedback(session, result.message_id, "excelente")
    with pytest.raises(ChatError, match="asistente"):
        submit_feedback(session, _user_message(session, result.session_token).id, "helpful")
    with pytest.raises(ChatError, match="comentario"):
        submit_feedback(session, result.message_id, "helpful", "x" * 501)


def test_cleanup_expired_sessions(session, limiter):
    result = handle_chat_message(session, ChatRequest(message="Hola"), limiter)
    chat_session = session.query(ChatSession).filter_by(session_token=result.session_token).first()
    chat_session.expires_at = datetime.utcnow() - timedelta(hours=1)
    session.flush()

    assert cleanup_expired_sessions(session) >= 1
    assert session.query(ChatSession).filter_by(session_token=result.session_token).first() is None
    assert session.query(ChatMessage).filter_by(id=result.message_id).first() is None
