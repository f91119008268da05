"""
Temas de FAQs.

No hay tabla de temas: un tema es el valor de `FAQ.tema` dentro de una
subdependencia. Renombrar o eliminar un tema modifica todas las FAQs que lo
usan. El id expuesto (`tema-<subdependencia_id>-<slug>`) es solo informativo;
las operaciones reciben subdependencia y nombre explícitos.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..text_normalization import matches_all_terms, normalize_text, slugify
from .helpers import get_subdependencia
from .models import FAQ, Subdependencia


def tema_id(subdependencia_id: str, nombre: str) -> str:
    return f"tema-{subdependencia_id}-{slugify(nombre)}"


def list_temas(
    session: Session,
    subdependencia_id: str | None = None,
    query: str | None = None,
) -> List[Dict[str, Any]]:
    """
    Lista los temas con la cantidad de FAQs activas de cada uno.

    Returns:
        Lista de dicts `{id, nombre, subdependencia_id, subdependencia_nombre, faqs_count}`
        ordenada por subdependencia y nombre.
    """
    q = (
        session.query(FAQ.subdependencia_id, Subdependencia.nombre, FAQ.tema, func.count(FAQ.id))
        .join(Subdependencia, FAQ.subdependencia_id == Subdependencia.id)
        .filter(FAQ.activo.is_(True), FAQ.tema.isnot(None), FAQ.tema != "")
        .group_by(FAQ.subdependencia_id, Subdependencia.nombre, FAQ.tema)
    )
    if subdependencia_id:
        q = q.filter(FAQ.subdependencia_id == subdependencia_id)

    temas = [
        {
            "id": tema_id(sub_id, nombre),
            "nombre": nombre,
            "subdependencia_id": sub_id,
            "subdependencia_nombre": sub_nombre,
            "faqs_count": count,
        }
        for sub_id, sub_nombre, nombre, count in q.all()
        if matches_all_terms(query, [nombre])
    ]
    temas.sort(key=lambda t: (normalize_text(t["subdependencia_nombre"]), normalize_text(t["nombre"])))
    return temas


def list_tema_names(session: Session, subdependencia_id: str) -> list[str]:
    """Nombres únicos de temas de una subdependencia, ordenados."""
    rows = (
        session.query(FAQ.tema)
        .filter(FAQ.subdependencia_id == subdependencia_id, FAQ.tema.isnot(None), FAQ.tema != "")
        .distinct()
        .all()
    )
    return sorted((r[0] for r in rows), key=normalize_text)


def rename_tema(session: Session, subdependencia_id: str, nombre_actual: str, nombre_nuevo: str) -> int:
    """
    Renombra un tema en todas sus FAQs.

    Returns:
        Cantidad de FAQs actualizadas

    Raises:
        ValueError: Si la subdependencia o el tema no existen, o el nombre nuevo está vacío
    """
    if not get_subdependencia(session, subdependencia_id):
        raise ValueError(f"Subdependencia {subdependencia_id} no encontrada")
    nombre_nuevo = (nombre_nuevo or "").strip()
    if not nombre_nuevo:
        raise ValueError("El nombre del tema es requerido")

    faqs = session.query(FAQ).filter_by(subdependencia_id=subdependencia_id, tema=nombre_actual).all()
    if not faqs:
        raise ValueError(f"Tema '{nombre_actual}' no encontrado")

    now = datetime.utcnow()
    for faq in faqs:
        faq.tema = nombre_nuevo
        faq.updated_at = now
    session.flush()
    return len(faqs)


def delete_tema(session: Session, subdependencia_id: str, nombre: str) -> int:
    """
    Elimina un tema: las FAQs quedan sin tema (no se borran).

    Returns:
        Cantidad de FAQs afectadas

    Raises:
        ValueError: Si el tema no existe en la subdependencia
    """
    faqs = session.query(FAQ).filter_by(subdependencia_id=subdependencia_id, tema=nombre).all()
    if not faqs:
        raise ValueError(f"Tema '{nombre}' no encontrado")

    now = datetime.utcnow()
    for faq in faqs:
        faq.tema = None
        faq.updated_at = now
    session.flush()
    return len(faqs)
