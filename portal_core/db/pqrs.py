"""
PQRS: peticiones, quejas, reclamos y sugerencias.

Cualquier ciudadano puede radicar una PQRS (sin autenticación). Cada PQRS
recibe un número de radicado único `PQRS-<epoch ms>-<3 dígitos>` con el que
luego puede consultar su estado.

Estados: pendiente -> en_proceso -> resuelto -> cerrado. Los funcionarios
pueden mover una PQRS a cualquier estado; al registrar una respuesta se fija
`fecha_respuesta`.
"""

from __future__ import annotations

import logging
import random
import re
import time
from datetime import datetime
from typing import Any, Dict

from sqlalchemy.orm import Session

from ..text_normalization import matches_all_terms
from .helpers import Page, get_dependencia, paginate
from .models import PQRS, PQRS_ESTADOS, PQRS_TIPOS

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_RADICADO_ATTEMPTS = 5


def generate_radicado() -> str:
    """Número de radicado: `PQRS-<timestamp en ms>-<3 dígitos aleatorios>`."""
    return f"PQRS-{int(time.time() * 1000)}-{random.randint(0, 999):03d}"


def _unique_radicado(session: Session) -> str:
    for _ in range(_RADICADO_ATTEMPTS):
        radicado = generate_radicado()
        if not get_pqrs_by_radicado(session, radicado):
            return radicado
    raise ValueError("No se pudo generar un número de radicado único")


def create_pqrs(session: Session, data: Dict[str, Any]) -> PQRS:
    """
    Radica una PQRS.

    Args:
        session: Sesión de base de datos
        data: tipo, nombre, email, telefono (opcional), dependencia_id, asunto, descripcion

    Returns:
        PQRS creada en estado "pendiente" con número de radicado

    Raises:
        ValueError: Si faltan campos, el tipo/email son inválidos o la dependencia no existe
    """
    tipo = (data.get("tipo") or "").strip()
    if tipo not in PQRS_TIPOS:
        raise ValueError(f"Tipo de PQRS inválido: {tipo}. Opciones: {', '.join(PQRS_TIPOS)}")

    required = {
        "nombre": "El nombre es requerido",
        "email": "El email es requerido",
        "asunto": "El asunto es requerido",
        "descripcion": "La descripción es requerida",
        "dependencia_id": "La dependencia es requerida",
    }
    values = {}
    for key, message in required.items():
        value = (data.get(key) or "").strip()
        if not value:
            raise ValueError(message)
        values[key] = value

    if not _EMAIL_RE.match(values["email"]):
        raise ValueError(f"Email inválido: {values['email']}")
    if not get_dependencia(session, values["dependencia_id"]):
        raise ValueError(f"Dependencia {values['dependencia_id']} no encontrada")

    pqrs = PQRS(
        tipo=tipo,
        telefono=(data.get("telefono") or "").strip() or None,
        estado="pendiente",
        numero_radicado=_unique_radicado(session),
        **values,
    )
    session.add(pqrs)
    session.flush()
    logger.info(f"PQRS radicada: {pqrs.numero_radicado} ({tipo})")
    return pqrs


def get_pqrs(session: Session, pqrs_id: str) -> PQRS | None:
    return session.query(PQRS).filter_by(id=pqrs_id).first()


def get_pqrs_by_radicado(session: Session, numero_radicado: str) -> PQRS | None:
    return session.query(PQRS).filter_by(numero_radicado=numero_radicado).first()


def search_pqrs(
    session: Session,
    query: str | None = None,
    tipo: str | None = None,
    estado: str | None = None,
    dependencia_id: str | None = None,
    fecha_desde: datetime | None = None,
    fecha_hasta: datetime | None = None,
    page: int = 1,
    limit: int = 10,
) -> Page:
    """
    Busca PQRS con filtros; más recientes primero.

    La búsqueda de texto cubre radicado, asunto, descripción y nombre.
    """
    q = session.query(PQRS)
    if tipo:
        q = q.filter(PQRS.tipo == tipo)
    if estado:
        q = q.filter(PQRS.estado == estado)
    if dependencia_id:
        q = q.filter(PQRS.dependencia_id == dependencia_id)
    if fecha_desde:
        q = q.filter(PQRS.created_at >= fecha_desde)
    if fecha_hasta:
        q = q.filter(PQRS.created_at <= fecha_hasta)

    items = [
        p for p in q.order_by(PQRS.created_at.desc()).all()
        if matches_all_terms(query, [p.numero_radicado, p.asunto, p.descripcion, p.nombre])
    ]
    return paginate(items, page, limit)


def update_pqrs_status(
    session: Session,
    pqrs_id: str,
    estado: str,
    respuesta: str | None = None,
) -> PQRS:
    """
    Cambia el estado de una PQRS y opcionalmente registra la respuesta.

    Raises:
        ValueError: Si la PQRS no existe o el estado es inválido
    """
    if estado not in PQRS_ESTADOS:
        raise ValueError(f"Estado inválido: {estado}. Opciones: {', '.join(PQRS_ESTADOS)}")
    pqrs = get_pqrs(session, pqrs_id)
    if not pqrs:
        raise ValueError(f"PQRS {pqrs_id} no encontrada")

    pqrs.estado = estado
    if respuesta is not None and respuesta.strip():
        pqrs.respuesta = respuesta.strip()
        pqrs.fecha_respuesta = datetime.utcnow()
    pqrs.updated_at = datetime.utcnow()
    return pqrs


def delete_pqrs(session: Session, pqrs_id: str) -> bool:
    pqrs = get_pqrs(session, pqrs_id)
    if not pqrs:
        raise ValueError(f"PQRS {pqrs_id} no encontrada")
    session.delete(pqrs)
    return True


def get_pqrs_stats(session: Session, now: datetime | None = None) -> Dict[str, Any]:
    """
    Estadísticas agregadas de PQRS.

    Returns:
        Dict con total, by_tipo, by_estado, this_month y
        avg_response_time_days (None si no hay PQRS respondidas)
    """
    now = now or datetime.utcnow()
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    by_tipo = {tipo: 0 for tipo in PQRS_TIPOS}
    by_estado = {estado: 0 for estado in PQRS_ESTADOS}
    total = 0
    this_month = 0
    response_days = []

    for pqrs in session.query(PQRS).all():
        total += 1
        by_tipo[pqrs.tipo] = by_tipo.get(pqrs.tipo, 0) + 1
        by_estado[pqrs.estado] = by_estado.get(pqrs.estado, 0) + 1
        if pqrs.created_at and pqrs.created_at >= month_start:
            this_month += 1
        if pqrs.fecha_respuesta and pqrs.created_at:
            delta = pqrs.fecha_respuesta - pqrs.created_at
            response_days.append(delta.total_seconds() / 86400)

    avg = round(sum(response_days) / len(response_days), 2) if response_days else None
    return {
        "total": total,
        "by_tipo": by_tipo,
        "by_estado": by_estado,
        "this_month": this_month,
        "avg_response_time_days": avg,
    }
