"""
Modelos ORM del portal de servicios ciudadanos.

Estructura general:
- Jerarquía organizacional: Dependencia -> Subdependencia.
- Catálogo de servicios: Tramite y OPA cuelgan de una Subdependencia.
- FAQ: cuelga de una Dependencia (y opcionalmente de una Subdependencia),
  agrupada por `tema` (string libre, ver `portal_core.db.temas`).
- PQRS: solicitudes ciudadanas dirigidas a una Dependencia.
- Chatbot: ContentEmbedding (base de conocimiento), ChatSession,
  ChatMessage y ChatFeedback.

Las listas (requisitos, instructivo, palabras clave, embeddings) se guardan
como JSON. La metadata libre se guarda como texto JSON en `metadata_json`.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


# Valores permitidos en columnas tipo "enum" (se validan en helpers)
USER_ROLES = ("ciudadano", "funcionario", "admin")
MODALIDADES = ("virtual", "presencial", "mixto")
PQRS_TIPOS = ("peticion", "queja", "reclamo", "sugerencia")
PQRS_ESTADOS = ("pendiente", "en_proceso", "resuelto", "cerrado")
CONTENT_TYPES = ("tramite", "opa", "faq", "dependencia", "general")
CHAT_CHANNELS = ("web", "whatsapp")
CHAT_ROLES = ("user", "assistant", "system")
FEEDBACK_TYPES = ("helpful", "not_helpful", "report_issue")


class User(Base):
    """
    Usuario local del portal.

    La autenticación la hace un proveedor externo; acá sólo se guarda el rol
    para autorizar operaciones de escritura.
    """
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    nombre: Mapped[str] = mapped_column(String(200), default="")
    rol: Mapped[str] = mapped_column(String(20), default="ciudadano")  # ciudadano | funcionario | admin
    activo: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


# ============================================================
# Jerarquía organizacional
# ============================================================

class Dependencia(Base):
    """Dependencia (secretaría u oficina) de la alcaldía."""
    __tablename__ = "dependencias"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    codigo: Mapped[str] = mapped_column(String(20), unique=True, index=True)
    nombre: Mapped[str] = mapped_column(String(200))
    descripcion: Mapped[str | None] = mapped_column(Text, nullable=True)
    activo: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    subdependencias: Mapped[list["Subdependencia"]] = relationship(back_populates="dependencia")
    faqs: Mapped[list["FAQ"]] = relationship(back_populates="dependencia")


class Subdependencia(Base):
    """Subdependencia (dirección u oficina) dentro de una dependencia."""
    __tablename__ = "subdependencias"
    __table_args__ = (
        UniqueConstraint("dependencia_id", "codigo", name="uq_subdependencia_codigo"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    codigo: Mapped[str] = mapped_column(String(20), index=True)
    nombre: Mapped[str] = mapped_column(String(200))
    descripcion: Mapped[str | None] = mapped_column(Text, nullable=True)
    dependencia_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("dependencias.id", ondelete="RESTRICT"), index=True
    )
    activo: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    dependencia: Mapped["Dependencia"] = relationship(back_populates="subdependencias")
    tramites: Mapped[list["Tramite"]] = relationship(back_populates="subdependencia")
    opas: Mapped[list["OPA"]] = relationship(back_populates="subdependencia")


# ============================================================
# Catálogo de servicios
# ============================================================

class Tramite(Base):
    """
    Trámite municipal.

    Un trámite activo debe tener instructivo (pasos) no vacío.
    """
    __tablename__ = "tramites"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    codigo_unico: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    nombre: Mapped[str] = mapped_column(String(300))
    descripcion: Mapped[str | None] = mapped_column(Text, nullable=True)
    formulario: Mapped[str | None] = mapped_column(Text, nullable=True)
    tiempo_respuesta: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tiene_pago: Mapped[bool] = mapped_column(Boolean, default=False)

    requisitos: Mapped[list] = mapped_column(JSON, default=list)
    instructivo: Mapped[list] = mapped_column(JSON, default=list)
    modalidad: Mapped[str] = mapped_column(String(20), default="presencial")  # virtual | presencial | mixto
    categoria: Mapped[str | None] = mapped_column(String(100), nullable=True)
    observaciones: Mapped[str | None] = mapped_column(Text, nullable=True)

    visualizacion_suit: Mapped[str | None] = mapped_column(String(500), nullable=True)
    visualizacion_gov: Mapped[str | None] = mapped_column(String(500), nullable=True)

    subdependencia_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("subdependencias.id", ondelete="RESTRICT"), index=True
    )
    activo: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    subdependencia: Mapped["Subdependencia"] = relationship(back_populates="tramites")


class OPA(Base):
    """
    Orden de Pago y Autorización.

    Una OPA activa requiere requisitos y tiempo de respuesta.
    """
    __tablename__ = "opas"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    codigo_opa: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    nombre: Mapped[str] = mapped_column(String(300))
    descripcion: Mapped[str | None] = mapped_column(Text, nullable=True)
    formulario: Mapped[str | None] = mapped_column(Text, nullable=True)
    tiempo_respuesta: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tiene_pago: Mapped[bool] = mapped_column(Boolean, default=False)
    requisitos: Mapped[list] = mapped_column(JSON, default=list)

    visualizacion_suit: Mapped[str | None] = mapped_column(String(500), nullable=True)
    visualizacion_gov: Mapped[str | None] = mapped_column(String(500), nullable=True)

    subdependencia_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("subdependencias.id", ondelete="RESTRICT"), index=True
    )
    activo: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    subdependencia: Mapped["Subdependencia"] = relationship(back_populates="opas")


class FAQ(Base):
    """Pregunta frecuente, agrupada por dependencia, subdependencia y tema."""
    __tablename__ = "faqs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    pregunta: Mapped[str] = mapped_column(Text)
    respuesta: Mapped[str] = mapped_column(Text)
    palabras_clave: Mapped[list] = mapped_column(JSON, default=list)

    dependencia_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("dependencias.id", ondelete="RESTRICT"), index=True
    )
    subdependencia_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("subdependencias.id", ondelete="SET NULL"), nullable=True, index=True
    )
    tema: Mapped[str | None] = mapped_column(String(200), nullable=True, index=True)
    orden: Mapped[int] = mapped_column(Integer, default=0)
    activo: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    dependencia: Mapped["Dependencia"] = relationship(back_populates="faqs")
    subdependencia: Mapped["Subdependencia"] = relationship()


# ============================================================
# PQRS
# ============================================================

class PQRS(Base):
    """Petición, queja, reclamo o sugerencia radicada por un ciudadano."""
    __tablename__ = "pqrs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    tipo: Mapped[str] = mapped_column(String(20))  # peticion | queja | reclamo | sugerencia
    nombre: Mapped[str] = mapped_column(String(200))
    email: Mapped[str] = mapped_column(String(255))
    telefono: Mapped[str | None] = mapped_column(String(50), nullable=True)

    dependencia_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("dependencias.id", ondelete="RESTRICT"), index=True
    )
    asunto: Mapped[str] = mapped_column(String(300))
    descripcion: Mapped[str] = mapped_column(Text)

    estado: Mapped[str] = mapped_column(String(20), default="pendiente", index=True)
    numero_radicado: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    respuesta: Mapped[str | None] = mapped_column(Text, nullable=True)
    fecha_respuesta: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    dependencia: Mapped["Dependencia"] = relationship()


# ============================================================
# Chatbot
# ============================================================

class ContentEmbedding(Base):
    """
    Entrada de la base de conocimiento del asistente.

    `embedding` es la lista de floats devuelta por el modelo de embeddings;
    la similitud se calcula en Python (ver `portal_core.chatbot.knowledge`).
    """
    __tablename__ = "content_embeddings"
    __table_args__ = (
        UniqueConstraint("content_type", "content_id", name="uq_content_embedding"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    content_id: Mapped[str] = mapped_column(String(100), index=True)
    content_type: Mapped[str] = mapped_column(String(20), index=True)  # tramite | opa | faq | dependencia | general
    title: Mapped[str] = mapped_column(String(500))
    content: Mapped[str] = mapped_column(Text)
    embedding: Mapped[list] = mapped_column(JSON, default=list)
    tokens: Mapped[int] = mapped_column(Integer, default=0)
    metadata_json: Mapped[str] = mapped_column(Text, default="{}")

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ChatSession(Base):
    """Conversación con el asistente (web o WhatsApp)."""
    __tablename__ = "chat_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    session_token: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    user_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    channel: Mapped[str] = mapped_column(String(20), default="web")  # web | whatsapp
    phone_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    metadata_json: Mapped[str] = mapped_column(Text, default="{}")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    expires_at: Mapped[datetime] = mapped_column(DateTime, index=True)

    messages: Mapped[list["ChatMessage"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ChatMessage.created_at",
    )


class ChatMessage(Base):
    """Mensaje dentro de una sesión de chat."""
    __tablename__ = "chat_messages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    session_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("chat_sessions.id", ondelete="CASCADE"), index=True
    )
    role: Mapped[str] = mapped_column(String(20))  # user | assistant | system
    content: Mapped[str] = mapped_column(Text)
    metadata_json: Mapped[str] = mapped_column(Text, default="{}")
    confidence_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    escalated_to_human: Mapped[bool] = mapped_column(Boolean, default=False)
    feedback: Mapped[str | None] = mapped_column(String(20), nullable=True)  # helpful | not_helpful

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    session: Mapped["ChatSession"] = relationship(back_populates="messages")


class ChatFeedback(Base):
    """Valoración de un ciudadano sobre una respuesta del asistente."""
    __tablename__ = "chat_feedback"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    message_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("chat_messages.id", ondelete="CASCADE"), unique=True, index=True
    )
    session_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("chat_sessions.id", ondelete="CASCADE"), index=True
    )
    feedback_type: Mapped[str] = mapped_column(String(20))  # helpful | not_helpful | report_issue
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
