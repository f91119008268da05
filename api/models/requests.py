"""
Modelos de request/response para la API.

Estos modelos definen la estructura esperada de los requests HTTP,
validando tipos y valores antes de pasarlos al core.

Los modelos de actualización tienen todos los campos opcionales: las rutas
usan `model_dump(exclude_unset=True)` para aplicar sólo lo enviado.
"""

from enum import Enum
from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class Modalidad(str, Enum):
    VIRTUAL = "virtual"
    PRESENCIAL = "presencial"
    MIXTO = "mixto"


class PQRSTipo(str, Enum):
    PETICION = "peticion"
    QUEJA = "queja"
    RECLAMO = "reclamo"
    SUGERENCIA = "sugerencia"


class PQRSEstado(str, Enum):
    PENDIENTE = "pendiente"
    EN_PROCESO = "en_proceso"
    RESUELTO = "resuelto"
    CERRADO = "cerrado"


class ServiceType(str, Enum):
    TRAMITE = "tramite"
    OPA = "opa"


class ExportFormat(str, Enum):
    CSV = "csv"
    JSON = "json"


class ConflictStrategy(str, Enum):
    """Qué hacer cuando un registro importado ya existe."""

    UPDATE = "update"
    SKIP = "skip"
    CREATE = "create"


class ChatChannel(str, Enum):
    WEB = "web"
    WHATSAPP = "whatsapp"


class FeedbackType(str, Enum):
    HELPFUL = "helpful"
    NOT_HELPFUL = "not_helpful"
    REPORT_ISSUE = "report_issue"


class PageResponse(BaseModel, Generic[T]):
    """Respuesta paginada genérica."""

    items: List[T] = Field(default_factory=list)
    total: int = Field(..., description="Total de elementos que cumplen los filtros")
    page: int = Field(..., description="Página actual (desde 1)")
    limit: int = Field(..., description="Tamaño de página")
    total_pages: int = Field(..., description="Cantidad de páginas")


# ============================================================
# Dependencias / Subdependencias
# ============================================================

class DependenciaCreateRequest(BaseModel):
    """Request para crear una dependencia."""

    codigo: str = Field(..., description="Código único de la dependencia (ej: 010)")
    nombre: str = Field(..., description="Nombre de la dependencia")
    descripcion: Optional[str] = Field(default=None, description="Descripción")
    activo: bool = Field(default=True, description="Si la dependencia está activa")


class DependenciaUpdateRequest(BaseModel):
    codigo: Optional[str] = None
    nombre: Optional[str] = None
    descripcion: Optional[str] = None
    activo: Optional[bool] = None


class DependenciaResponse(BaseModel):
    """Response de una dependencia, con conteos de elementos asociados."""

    id: str
    codigo: str
    nombre: str
    descripcion: Optional[str] = None
    activo: bool
    subdependencias_count: int = 0
    tramites_count: int = 0
    opas_count: int = 0
    created_at: str
    updated_at: str


class SubdependenciaCreateRequest(BaseModel):
    """Request para crear una subdependencia."""

    dependencia_id: str = Field(..., description="ID de la dependencia a la que pertenece")
    codigo: str = Field(..., description="Código, único dentro de la dependencia")
    nombre: str = Field(..., description="Nombre de la subdependencia")
    descripcion: Optional[str] = Field(default=None, description="Descripción")
    activo: bool = Field(default=True, description="Si la subdependencia está activa")


class SubdependenciaUpdateRequest(BaseModel):
    dependencia_id: Optional[str] = None
    codigo: Optional[str] = None
    nombre: Optional[str] = None
    descripcion: Optional[str] = None
    activo: Optional[bool] = None


class SubdependenciaResponse(BaseModel):
    id: str
    codigo: str
    nombre: str
    descripcion: Optional[str] = None
    dependencia_id: str
    dependencia_nombre: Optional[str] = None
    activo: bool
    tramites_count: int = 0
    opas_count: int = 0
    created_at: str
    updated_at: str


# ============================================================
# Trámites / OPAs
# ============================================================

class TramiteCreateRequest(BaseModel):
    """
    Request para crear un trámite.

    Un trámite activo debe tener al menos un paso en `instructivo`.
    """

    codigo_unico: str = Field(..., description="Código único del trámite")
    nombre: str = Field(..., description="Nombre del trámite")
    subdependencia_id: str = Field(..., description="ID de la subdependencia responsable")
    descripcion: Optional[str] = Field(default=None, description="Descripción (mínimo 50 caracteres)")
    formulario: Optional[str] = Field(default=None, description="Formulario asociado")
    tiempo_respuesta: Optional[str] = Field(default=None, description="Tiempo de respuesta (texto libre)")
    tiene_pago: bool = Field(default=False, description="Si el trámite tiene costo")
    requisitos: List[str] = Field(default_factory=list, description="Requisitos")
    instructivo: List[str] = Field(default_factory=list, description="Pasos del trámite")
    modalidad: Modalidad = Field(default=Modalidad.PRESENCIAL, description="virtual | presencial | mixto")
    categoria: Optional[str] = Field(default=None, description="Categoría")
    observaciones: Optional[str] = Field(default=None, description="Observaciones")
    visualizacion_suit: Optional[str] = Field(default=None, description="URL en el SUIT")
    visualizacion_gov: Optional[str] = Field(default=None, description="URL en GOV.CO")
    activo: bool = Field(default=True)


class TramiteUpdateRequest(BaseModel):
    codigo_unico: Optional[str] = None
    nombre: Optional[str] = None
    subdependencia_id: Optional[str] = None
    descripcion: Optional[str] = None
    formulario: Optional[str] = None
    tiempo_respuesta: Optional[str] = None
    tiene_pago: Optional[bool] = None
    requisitos: Optional[List[str]] = None
    instructivo: Optional[List[str]] = None
    modalidad: Optional[Modalidad] = None
    categoria: Optional[str] = None
    observaciones: Optional[str] = None
    visualizacion_suit: Optional[str] = None
    visualizacion_gov: Optional[str] = None
    activo: Optional[bool] = None


class TramiteResponse(BaseModel):
    id: str
    codigo_unico: str
    nombre: str
    descripcion: Optional[str] = None
    formulario: Optional[str] = None
    tiempo_respuesta: Optional[str] = None
    tiene_pago: bool
    requisitos: List[str] = Field(default_factory=list)
    instructivo: List[str] = Field(default_factory=list)
    modalidad: str
    categoria: Optional[str] = None
    observaciones: Optional[str] = None
    visualizacion_suit: Optional[str] = None
    visualizacion_gov: Optional[str] = None
    subdependencia_id: str
    subdependencia_nombre: Optional[str] = None
    dependencia_id: Optional[str] = None
    dependencia_nombre: Optional[str] = None
    activo: bool
    created_at: str
    updated_at: str


class OPACreateRequest(BaseModel):
    """
    Request para crear una OPA.

    Una OPA activa requiere requisitos y tiempo de respuesta.
    """

    codigo_opa: str = Field(..., description="Código único de la OPA")
    nombre: str = Field(..., description="Nombre de la OPA")
    subdependencia_id: str = Field(..., description="ID de la subdependencia responsable")
    descripcion: Optional[str] = Field(default=None, description="Descripción (mínimo 50 caracteres)")
    formulario: Optional[str] = Field(default=None, description="Formulario asociado (no vacío)")
    tiempo_respuesta: Optional[str] = Field(default=None, description="Tiempo de respuesta")
    tiene_pago: bool = Field(default=False)
    requisitos: List[str] = Field(default_factory=list)
    visualizacion_suit: Optional[str] = None
    visualizacion_gov: Optional[str] = None
    activo: bool = Field(default=True)


class OPAUpdateRequest(BaseModel):
    codigo_opa: Optional[str] = None
    nombre: Optional[str] = None
    subdependencia_id: Optional[str] = None
    descripcion: Optional[str] = None
    formulario: Optional[str] = None
    tiempo_respuesta: Optional[str] = None
    tiene_pago: Optional[bool] = None
    requisitos: Optional[List[str]] = None
    visualizacion_suit: Optional[str] = None
    visualizacion_gov: Optional[str] = None
    activo: Optional[bool] = None


class OPAResponse(BaseModel):
    id: str
    codigo_opa: str
    nombre: str
    descripcion: Optional[str] = None
    formulario: Optional[str] = None
    tiempo_respuesta: Optional[str] = None
    tiene_pago: bool
    requisitos: List[str] = Field(default_factory=list)
    visualizacion_suit: Optional[str] = None
    visualizacion_gov: Optional[str] = None
    subdependencia_id: str
    subdependencia_nombre: Optional[str] = None
    dependencia_id: Optional[str] = None
    dependencia_nombre: Optional[str] = None
    activo: bool
    created_at: str
    updated_at: str


class ServiceCreateRequest(BaseModel):
    """Request para crear un servicio (trámite u OPA) desde la vista unificada."""

    tipo: ServiceType = Field(..., description="tramite | opa")
    codigo: str = Field(..., description="Código del servicio")
    nombre: str = Field(..., description="Nombre del servicio")
    subdependencia_id: str = Field(..., description="ID de la subdependencia")
    descripcion: Optional[str] = None
    formulario: Optional[str] = None
    tiempo_respuesta: Optional[str] = None
    tiene_pago: bool = False
    requisitos: List[str] = Field(default_factory=list)
    instrucciones: List[str] = Field(default_factory=list, description="Pasos (sólo trámites)")
    visualizacion_suit: Optional[str] = None
    visualizacion_gov: Optional[str] = None
    activo: bool = True


class ServiceUpdateRequest(BaseModel):
    codigo: Optional[str] = None
    nombre: Optional[str] = None
    subdependencia_id: Optional[str] = None
    descripcion: Optional[str] = None
    formulario: Optional[str] = None
    tiempo_respuesta: Optional[str] = None
    tiene_pago: Optional[bool] = None
    requisitos: Optional[List[str]] = None
    instrucciones: Optional[List[str]] = None
    visualizacion_suit: Optional[str] = None
    visualizacion_gov: Optional[str] = None
    activo: Optional[bool] = None


# ============================================================
# FAQs / Temas
# ============================================================

class FAQCreateRequest(BaseModel):
    """Request para crear una FAQ. La dependencia se completa desde la subdependencia si falta."""

    pregunta: str = Field(..., description="Pregunta")
    respuesta: str = Field(..., description="Respuesta")
    dependencia_id: Optional[str] = Field(default=None, description="ID de la dependencia")
    subdependencia_id: Optional[str] = Field(default=None, description="ID de la subdependencia")
    tema: Optional[str] = Field(default=None, description="Tema dentro de la subdependencia")
    palabras_clave: List[str] = Field(default_factory=list)
    orden: int = Field(default=0, description="Orden dentro del tema")
    activo: bool = True


class FAQUpdateRequest(BaseModel):
    pregunta: Optional[str] = None
    respuesta: Optional[str] = None
    dependencia_id: Optional[str] = None
    subdependencia_id: Optional[str] = None
    tema: Optional[str] = None
    palabras_clave: Optional[List[str]] = None
    orden: Optional[int] = None
    activo: Optional[bool] = None


class FAQResponse(BaseModel):
    id: str
    pregunta: str
    respuesta: str
    palabras_clave: List[str] = Field(default_factory=list)
    dependencia_id: str
    dependencia_nombre: Optional[str] = None
    subdependencia_id: Optional[str] = None
    subdependencia_nombre: Optional[str] = None
    tema: Optional[str] = None
    orden: int = 0
    activo: bool
    created_at: str
    updated_at: str


class TemaResponse(BaseModel):
    id: str = Field(..., description="tema-<subdependencia_id>-<slug>")
    nombre: str
    subdependencia_id: str
    subdependencia_nombre: Optional[str] = None
    faqs_count: int = 0


class TemaRenameRequest(BaseModel):
    subdependencia_id: str = Field(..., description="ID de la subdependencia del tema")
    nombre_actual: str = Field(..., description="Nombre actual del tema")
    nombre_nuevo: str = Field(..., description="Nuevo nombre del tema")


# ============================================================
# PQRS
# ============================================================

class PQRSCreateRequest(BaseModel):
    """Request para radicar una PQRS (público)."""

    tipo: PQRSTipo = Field(..., description="peticion | queja | reclamo | sugerencia")
    nombre: str = Field(..., description="Nombre del ciudadano")
    email: str = Field(..., description="Email de contacto")
    telefono: Optional[str] = Field(default=None, description="Teléfono de contacto")
    dependencia_id: str = Field(..., description="Dependencia a la que se dirige")
    asunto: str = Field(..., description="Asunto")
    descripcion: str = Field(..., description="Descripción de la solicitud")


class PQRSStatusUpdateRequest(BaseModel):
    estado: PQRSEstado = Field(..., description="Nuevo estado")
    respuesta: Optional[str] = Field(default=None, description="Respuesta al ciudadano")


class PQRSResponse(BaseModel):
    id: str
    tipo: str
    nombre: str
    email: str
    telefono: Optional[str] = None
    dependencia_id: str
    dependencia_nombre: Optional[str] = None
    asunto: str
    descripcion: str
    estado: str
    numero_radicado: str
    respuesta: Optional[str] = None
    fecha_respuesta: Optional[str] = None
    created_at: str
    updated_at: str


# ============================================================
# Import / Export
# ============================================================

class ImportRequest(BaseModel):
    """Request de importación: el contenido del archivo viaja como texto."""

    format: ExportFormat = Field(default=ExportFormat.CSV, description="csv | json")
    content: str = Field(..., description="Contenido del archivo")
    conflict_strategy: ConflictStrategy = Field(
        default=ConflictStrategy.UPDATE,
        description="update | skip | create",
    )


class ImportResponse(BaseModel):
    success: bool
    message: str
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: List[str] = Field(default_factory=list)


# ============================================================
# Chat
# ============================================================

class ChatMessageRequest(BaseModel):
    """Mensaje del ciudadano al asistente virtual."""

    message: str = Field(..., description="Mensaje (máximo 1000 caracteres)")
    session_token: Optional[str] = Field(default=None, description="Token de sesión (se genera si falta)")
    channel: ChatChannel = Field(default=ChatChannel.WEB, description="web | whatsapp")
    phone_number: Optional[str] = Field(default=None, description="Teléfono (canal WhatsApp)")


class ChatMessageResponse(BaseModel):
    response: str
    confidence: float
    sources: List[str] = Field(default_factory=list)
    session_token: str
    escalate_to_human: bool
    message_id: str


class ChatFeedbackRequest(BaseModel):
    message_id: str = Field(..., description="ID del mensaje del asistente")
    feedback_type: FeedbackType = Field(..., description="helpful | not_helpful | report_issue")
    comment: Optional[str] = Field(default=None, description="Comentario (máximo 500 caracteres)")


class ChatFeedbackResponse(BaseModel):
    id: str
    message_id: str
    feedback_type: str
    created_at: str


class ReindexResponse(BaseModel):
    counts: dict[str, Any] = Field(default_factory=dict)
