"""
Gestión unificada de servicios (trámites + OPAs).

Vista de administración que trata trámites y OPAs como un único catálogo de
"servicios": listado combinado con filtros, métricas y CRUD que despacha
según `tipo`.

Mapeo de campos genéricos a columnas de cada modelo:
- `codigo`        -> `codigo_unico` (trámite) | `codigo_opa` (OPA)
- `instrucciones` -> `instructivo` (solo trámites)
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, joinedload

from .db import services as services_db
from .db.helpers import Page, paginate
from .db.models import OPA, Dependencia, Subdependencia, Tramite
from .text_normalization import matches_all_terms, normalize_text

SERVICE_TYPES = ("tramite", "opa")

SIN_DEPENDENCIA = "Sin dependencia"
SIN_SUBDEPENDENCIA = "Sin subdependencia"


@dataclass
class ServiceFilters:
    service_type: str = "both"          # tramite | opa | both
    query: str = ""
    dependencia_id: str = ""
    subdependencia_id: str = ""
    tipo_pago: str = "both"             # gratuito | con_pago | both
    activo: Optional[bool] = None
    page: int = 1
    limit: int = 20


@dataclass
class UnifiedServiceItem:
    id: str
    codigo: str
    nombre: str
    descripcion: Optional[str]
    tipo: str
    dependencia: Dict[str, Optional[str]]
    subdependencia: Dict[str, Optional[str]]
    tiene_pago: bool
    tiempo_respuesta: Optional[str]
    activo: bool
    requisitos: List[str] = field(default_factory=list)
    instrucciones: List[str] = field(default_factory=list)
    visualizacion_suit: Optional[str] = None
    visualizacion_gov: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ("created_at", "updated_at"):
            value = getattr(self, key)
            data[key] = value.isoformat() if value else None
        return data


def _check_tipo(tipo: str) -> None:
    if tipo not in SERVICE_TYPES:
        raise ValueError("Tipo de servicio inválido")


def to_unified_item(obj: Tramite | OPA) -> UnifiedServiceItem:
    """Proyecta un trámite u OPA a `UnifiedServiceItem`."""
    sub = obj.subdependencia
    dep = sub.dependencia if sub else None
    is_tramite = isinstance(obj, Tramite)
    return UnifiedServiceItem(
        id=obj.id,
        codigo=obj.codigo_unico if is_tramite else obj.codigo_opa,
        nombre=obj.nombre,
        descripcion=obj.descripcion,
        tipo="tramite" if is_tramite else "opa",
        dependencia={"id": dep.id if dep else None, "nombre": dep.nombre if dep else SIN_DEPENDENCIA},
        subdependencia={"id": sub.id if sub else None, "nombre": sub.nombre if sub else SIN_SUBDEPENDENCIA},
        tiene_pago=bool(obj.tiene_pago),
        tiempo_respuesta=obj.tiempo_respuesta,
        activo=bool(obj.activo),
        requisitos=list(obj.requisitos or []),
        instrucciones=list(obj.instructivo or []) if is_tramite else [],
        visualizacion_suit=obj.visualizacion_suit,
        visualizacion_gov=obj.visualizacion_gov,
        created_at=obj.created_at,
        updated_at=obj.updated_at,
    )


def _query_services(session: Session, model, filters: ServiceFilters) -> list:
    q = session.query(model).options(joinedload(model.subdependencia).joinedload(Subdependencia.dependencia))
    if filters.subdependencia_id:
        q = q.filter(model.subdependencia_id == filters.subdependencia_id)
    if filters.dependencia_id:
        q = q.join(Subdependencia, model.subdependencia_id == Subdependencia.id).filter(
            Subdependencia.dependencia_id == filters.dependencia_id
        )
    if filters.tipo_pago in ("gratuito", "con_pago"):
        q = q.filter(model.tiene_pago == (filters.tipo_pago == "con_pago"))
    if filters.activo is not None:
        q = q.filter(model.activo == filters.activo)
    return q.all()


def list_services(session: Session, filters: ServiceFilters | None = None) -> Dict[str, Any]:
    """
    Lista combinada de trámites y OPAs ordenada por nombre.

    Returns:
        Dict `{"page": Page[UnifiedServiceItem], "metrics": dict}`

    Raises:
        ValueError: Si `service_type` o `tipo_pago` son inválidos
    """
    filters = filters or ServiceFilters()
    if filters.service_type not in (*SERVICE_TYPES, "both"):
        raise ValueError("Tipo de servicio inválido")
    if filters.tipo_pago not in ("gratuito", "con_pago", "both", ""):
        raise ValueError(f"Filtro de pago inválido: {filters.tipo_pago}")

    items: list[UnifiedServiceItem] = []
    if filters.service_type in ("tramite", "both"):
        items.extend(
            to_unified_item(t) for t in _query_services(session, Tramite, filters)
            if matches_all_terms(filters.query, [t.codigo_unico, t.nombre, t.descripcion, t.formulario])
        )
    if filters.service_type in ("opa", "both"):
        items.extend(
            to_unified_item(o) for o in _query_services(session, OPA, filters)
            if matches_all_terms(filters.query, [o.codigo_opa, o.nombre, o.descripcion])
        )

    items.sort(key=lambda i: normalize_text(i.nombre))
    return {"page": paginate(items, filters.page, filters.limit), "metrics": calculate_metrics(session)}


def _type_metrics(session: Session, model) -> Dict[str, int]:
    total = session.query(model).count()
    activos = session.query(model).filter(model.activo.is_(True)).count()
    con_pago = session.query(model).filter(model.tiene_pago.is_(True)).count()
    return {
        "total": total,
        "activos": activos,
        "inactivos": total - activos,
        "con_pago": con_pago,
        "gratuitos": total - con_pago,
    }


def calculate_metrics(session: Session) -> Dict[str, Any]:
    """Métricas por tipo, combinadas y conteos organizacionales."""
    tramites = _type_metrics(session, Tramite)
    opas = _type_metrics(session, OPA)
    combined = {key: tramites[key] + opas[key] for key in tramites}
    return {
        "tramites": tramites,
        "opas": opas,
        "combined": combined,
        "dependencias": session.query(Dependencia).count(),
        "subdependencias": session.query(Subdependencia).count(),
    }


def to_model_data(tipo: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Traduce los campos genéricos de servicio a los del modelo."""
    _check_tipo(tipo)
    mapped = {k: v for k, v in data.items() if k not in ("tipo", "codigo", "instrucciones", "id")}
    if "codigo" in data:
        mapped["codigo_unico" if tipo == "tramite" else "codigo_opa"] = data["codigo"]
    if "instrucciones" in data and tipo == "tramite":
        mapped["instructivo"] = data["instrucciones"]
    allowed = services_db.TRAMITE_FIELDS if tipo == "tramite" else services_db.OPA_FIELDS
    return {k: v for k, v in mapped.items() if k in allowed}


def get_service(session: Session, tipo: str, service_id: str) -> UnifiedServiceItem | None:
    _check_tipo(tipo)
    obj = (services_db.get_tramite if tipo == "tramite" else services_db.get_opa)(session, service_id)
    return to_unified_item(obj) if obj else None


def create_service(session: Session, data: Dict[str, Any]) -> UnifiedServiceItem:
    """
    Crea un trámite u OPA según `data["tipo"]`.

    Raises:
        ValueError: Si el tipo es inválido o el servicio no pasa las validaciones
    """
    tipo = data.get("tipo") or ""
    _check_tipo(tipo)
    model_data = to_model_data(tipo, data)
    if tipo == "tramite":
        obj = services_db.create_tramite(session, model_data)
    else:
        obj = services_db.create_opa(session, model_data)
    session.refresh(obj)
    return to_unified_item(obj)


def update_service(session: Session, tipo: str, service_id: str, data: Dict[str, Any]) -> UnifiedServiceItem:
    _check_tipo(tipo)
    model_data = to_model_data(tipo, data)
    if tipo == "tramite":
        obj = services_db.update_tramite(session, service_id, model_data)
    else:
        obj = services_db.update_opa(session, service_id, model_data)
    session.flush()
    session.refresh(obj)
    return to_unified_item(obj)


def delete_service(session: Session, tipo: str, service_id: str) -> bool:
    _check_tipo(tipo)
    if tipo == "tramite":
        return services_db.delete_tramite(session, service_id)
    return services_db.delete_opa(session, service_id)


def toggle_service_active(session: Session, tipo: str, service_id: str) -> UnifiedServiceItem:
    """
    Activa/desactiva un servicio.

    Activar revalida las reglas (un trámite sin instructivo no puede activarse).

    Raises:
        ValueError: Si no existe o no cumple las reglas para quedar activo
    """
    _check_tipo(tipo)
    obj = (services_db.get_tramite if tipo == "tramite" else services_db.get_opa)(session, service_id)
    if not obj:
        raise ValueError(f"Servicio {service_id} no encontrado")
    return update_service(session, tipo, service_id, {"activo": not obj.activo})
