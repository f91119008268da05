"""
Catálogo de servicios: trámites y OPAs.

Reglas de negocio aplicadas al crear/actualizar:
- `descripcion`, si viene, debe tener al menos 50 caracteres.
- Las URLs de SUIT y GOV.CO deben empezar con http:// o https://.
- Trámite activo => instructivo no vacío.
- OPA activa => requisitos no vacíos y tiempo de respuesta definido.
- `modalidad` del trámite: virtual | presencial | mixto.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict

from sqlalchemy.orm import Session

from ..text_normalization import matches_all_terms, normalize_text
from .helpers import Page, apply_updates, clean_text_list, get_subdependencia, paginate
from .models import MODALIDADES, OPA, Subdependencia, Tramite

MIN_DESCRIPCION_LENGTH = 50

_URL_RE = re.compile(r"^https?://", re.IGNORECASE)

TRAMITE_FIELDS = (
    "codigo_unico", "nombre", "descripcion", "formulario", "tiempo_respuesta",
    "tiene_pago", "requisitos", "instructivo", "modalidad", "categoria",
    "observaciones", "visualizacion_suit", "visualizacion_gov",
    "subdependencia_id", "activo",
)

OPA_FIELDS = (
    "codigo_opa", "nombre", "descripcion", "formulario", "tiempo_respuesta",
    "tiene_pago", "requisitos", "visualizacion_suit", "visualizacion_gov",
    "subdependencia_id", "activo",
)


def _validate_common(obj: Tramite | OPA) -> None:
    if not (obj.nombre or "").strip():
        raise ValueError("El nombre del servicio es requerido")
    if obj.descripcion is not None and obj.descripcion.strip() and len(obj.descripcion.strip()) < MIN_DESCRIPCION_LENGTH:
        raise ValueError(f"La descripción debe tener al menos {MIN_DESCRIPCION_LENGTH} caracteres")
    for url_field in ("visualizacion_suit", "visualizacion_gov"):
        value = getattr(obj, url_field)
        if value and not _URL_RE.match(value):
            raise ValueError(f"{url_field} debe ser una URL http:// o https://")


def _normalize_lists(obj: Tramite | OPA, *names: str) -> None:
    for name in names:
        setattr(obj, name, clean_text_list(getattr(obj, name)))


def _empty_to_none(obj: Any, *names: str) -> None:
    for name in names:
        value = getattr(obj, name)
        if isinstance(value, str) and not value.strip():
            setattr(obj, name, None)


def validate_tramite(tramite: Tramite) -> None:
    """
    Valida las reglas de un trámite.

    Raises:
        ValueError: Con el primer problema encontrado
    """
    if not (tramite.codigo_unico or "").strip():
        raise ValueError("El código del servicio es requerido")
    _validate_common(tramite)
    if tramite.modalidad not in MODALIDADES:
        raise ValueError(f"Modalidad inválida: {tramite.modalidad}. Opciones: {', '.join(MODALIDADES)}")
    if tramite.activo and not tramite.instructivo:
        raise ValueError("Un trámite activo debe tener instructivo (al menos un paso)")


def validate_opa(opa: OPA) -> None:
    """
    Valida las reglas de una OPA.

    Raises:
        ValueError: Con el primer problema encontrado
    """
    if not (opa.codigo_opa or "").strip():
        raise ValueError("El código del servicio es requerido")
    _validate_common(opa)
    if opa.formulario is not None and not opa.formulario.strip():
        raise ValueError("El formulario no puede estar vacío")
    if opa.activo and not opa.requisitos:
        raise ValueError("Una OPA activa debe tener requisitos")
    if opa.activo and not (opa.tiempo_respuesta or "").strip():
        raise ValueError("Una OPA activa debe tener tiempo de respuesta")


def _require_subdependencia(session: Session, subdependencia_id: str | None) -> Subdependencia:
    if not subdependencia_id:
        raise ValueError("La subdependencia es requerida")
    subdependencia = get_subdependencia(session, subdependencia_id)
    if not subdependencia:
        raise ValueError(f"Subdependencia {subdependencia_id} no encontrada")
    return subdependencia


def _filter_by_org(q, model, subdependencia_id: str | None, dependencia_id: str | None):
    if subdependencia_id:
        q = q.filter(model.subdependencia_id == subdependencia_id)
    if dependencia_id:
        q = q.join(Subdependencia, model.subdependencia_id == Subdependencia.id).filter(
            Subdependencia.dependencia_id == dependencia_id
        )
    return q


# ============================================================
# Trámites
# ============================================================

def list_tramites(
    session: Session,
    query: str | None = None,
    subdependencia_id: str | None = None,
    dependencia_id: str | None = None,
    activo: bool | None = None,
    page: int = 1,
    limit: int = 10,
) -> Page:
    """
    Lista trámites ordenados por nombre.

    La búsqueda ignora tildes y cubre código, nombre, descripción, formulario
    y categoría.
    """
    q = _filter_by_org(session.query(Tramite), Tramite, subdependencia_id, dependencia_id)
    if activo is not None:
        q = q.filter(Tramite.activo == activo)

    tramites = [
        t for t in q.all()
        if matches_all_terms(query, [t.codigo_unico, t.nombre, t.descripcion, t.formulario, t.categoria])
    ]
    tramites.sort(key=lambda t: normalize_text(t.nombre))
    return paginate(tramites, page, limit)


def list_active_tramites(session: Session) -> list[Tramite]:
    return session.query(Tramite).filter(Tramite.activo.is_(True)).order_by(Tramite.nombre).all()


def get_tramite(session: Session, tramite_id: str) -> Tramite | None:
    return session.query(Tramite).filter_by(id=tramite_id).first()


def get_tramite_by_codigo(session: Session, codigo: str) -> Tramite | None:
    return session.query(Tramite).filter_by(codigo_unico=codigo).first()


def create_tramite(session: Session, data: Dict[str, Any]) -> Tramite:
    """
    Crea un trámite.

    Args:
        session: Sesión de base de datos
        data: Campos del trámite (ver `TRAMITE_FIELDS`)

    Returns:
        Tramite creado (con id asignado)

    Raises:
        ValueError: Si falla alguna regla o el código ya existe
    """
    _require_subdependencia(session, data.get("subdependencia_id"))
    codigo = (data.get("codigo_unico") or "").strip()
    if codigo and get_tramite_by_codigo(session, codigo):
        raise ValueError(f"Ya existe un trámite con código {codigo}")

    tramite = Tramite(modalidad="presencial", activo=True, tiene_pago=False, requisitos=[], instructivo=[])
    apply_updates(tramite, {k: v for k, v in data.items() if v is not None}, TRAMITE_FIELDS)
    tramite.codigo_unico = codigo
    _normalize_lists(tramite, "requisitos", "instructivo")
    _empty_to_none(tramite, "descripcion", "visualizacion_suit", "visualizacion_gov", "categoria")
    validate_tramite(tramite)

    session.add(tramite)
    session.flush()
    return tramite


def update_tramite(session: Session, tramite_id: str, data: Dict[str, Any]) -> Tramite:
    """
    Actualiza parcialmente un trámite y revalida el resultado.

    Raises:
        ValueError: Si no existe o el resultado viola alguna regla
    """
    tramite = get_tramite(session, tramite_id)
    if not tramite:
        raise ValueError(f"Trámite {tramite_id} no encontrado")

    if "subdependencia_id" in data:
        _require_subdependencia(session, data["subdependencia_id"])
    codigo = data.get("codigo_unico")
    if codigo and codigo != tramite.codigo_unico:
        other = get_tramite_by_codigo(session, codigo)
        if other and other.id != tramite.id:
            raise ValueError(f"Ya existe un trámite con código {codigo}")

    apply_updates(tramite, data, TRAMITE_FIELDS)
    _normalize_lists(tramite, "requisitos", "instructivo")
    _empty_to_none(tramite, "descripcion", "visualizacion_suit", "visualizacion_gov", "categoria")
    validate_tramite(tramite)
    tramite.updated_at = datetime.utcnow()
    return tramite


def delete_tramite(session: Session, tramite_id: str) -> bool:
    tramite = get_tramite(session, tramite_id)
    if not tramite:
        raise ValueError(f"Trámite {tramite_id} no encontrado")
    session.delete(tramite)
    return True


# ============================================================
# OPAs
# ============================================================

def list_opas(
    session: Session,
    query: str | None = None,
    subdependencia_id: str | None = None,
    dependencia_id: str | None = None,
    activo: bool | None = None,
    page: int = 1,
    limit: int = 10,
) -> Page:
    """Lista OPAs ordenadas por nombre (búsqueda en código, nombre y descripción)."""
    q = _filter_by_org(session.query(OPA), OPA, subdependencia_id, dependencia_id)
    if activo is not None:
        q = q.filter(OPA.activo == activo)

    opas = [o for o in q.all() if matches_all_terms(query, [o.codigo_opa, o.nombre, o.descripcion])]
    opas.sort(key=lambda o: normalize_text(o.nombre))
    return paginate(opas, page, limit)


def list_active_opas(session: Session) -> list[OPA]:
    return session.query(OPA).filter(OPA.activo.is_(True)).order_by(OPA.nombre).all()


def get_opa(session: Session, opa_id: str) -> OPA | None:
    return session.query(OPA).filter_by(id=opa_id).first()


def get_opa_by_codigo(session: Session, codigo: str) -> OPA | None:
    return session.query(OPA).filter_by(codigo_opa=codigo).first()


def create_opa(session: Session, data: Dict[str, Any]) -> OPA:
    """
    Crea una OPA.

    Raises:
        ValueError: Si falla alguna regla o el código ya existe
    """
    _require_subdependencia(session, data.get("subdependencia_id"))
    codigo = (data.get("codigo_opa") or "").strip()
    if codigo and get_opa_by_codigo(session, codigo):
        raise ValueError(f"Ya existe una OPA con código {codigo}")

    opa = OPA(activo=True, tiene_pago=False, requisitos=[])
    apply_updates(opa, {k: v for k, v in data.items() if v is not None}, OPA_FIELDS)
    opa.codigo_opa = codigo
    _normalize_lists(opa, "requisitos")
    _empty_to_none(opa, "descripcion", "visualizacion_suit", "visualizacion_gov")
    validate_opa(opa)

    session.add(opa)
    session.flush()
    return opa


def update_opa(session: Session, opa_id: str, data: Dict[str, Any]) -> OPA:
    """
    Actualiza parcialmente una OPA y revalida el resultado.

    Raises:
        ValueError: Si no existe o el resultado viola alguna regla
    """
    opa = get_opa(session, opa_id)
    if not opa:
        raise ValueError(f"OPA {opa_id} no encontrada")

    if "subdependencia_id" in data:
        _require_subdependencia(session, data["subdependencia_id"])
    codigo = data.get("codigo_opa")
    if codigo and codigo != opa.codigo_opa:
        other = get_opa_by_codigo(session, codigo)
        if other and other.id != opa.id:
            raise ValueError(f"Ya existe una OPA con código {codigo}")

    apply_updates(opa, data, OPA_FIELDS)
    _normalize_lists(opa, "requisitos")
    _empty_to_none(opa, "descripcion", "visualizacion_suit", "visualizacion_gov")
    validate_opa(opa)
    opa.updated_at = datetime.utcnow()
    return opa


def delete_opa(session: Session, opa_id: str) -> bool:
    opa = get_opa(session, opa_id)
    if not opa:
        raise ValueError(f"OPA {opa_id} no encontrada")
    session.delete(opa)
    return True
