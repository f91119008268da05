"""
Exportación e importación de FAQs.

Una FAQ importada se considera existente si coincide su `id`, o si en la
misma dependencia ya hay una FAQ con la misma pregunta (sin tildes ni
mayúsculas). Las estrategias de conflicto son las mismas que para servicios.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from sqlalchemy.orm import Session, joinedload

from ..db import faqs as faqs_db
from ..db.helpers import get_dependencia, get_dependencia_by_nombre, get_subdependencia
from ..db.models import FAQ, Dependencia
from ..text_normalization import normalize_for_search, normalize_text
from .tabular import (
    ImportResult,
    batched,
    blank_to_none,
    check_conflict_strategy,
    check_format,
    csv_to_rows,
    format_bool,
    format_datetime,
    join_list,
    json_to_rows,
    non_text_errors,
    parse_bool,
    rows_to_csv,
    rows_to_json,
    split_list,
)

logger = logging.getLogger(__name__)

FAQ_HEADERS = [
    "id", "pregunta", "respuesta", "dependencia_id", "dependencia_nombre",
    "subdependencia_id", "subdependencia_nombre", "tema", "palabras_clave",
    "orden", "activo", "created_at", "updated_at",
]

FAQ_TEXT_FIELDS = (
    "id", "pregunta", "respuesta", "dependencia_id", "dependencia_nombre",
    "subdependencia_id", "subdependencia_nombre", "tema",
)


def faq_to_row(faq: FAQ) -> Dict[str, Any]:
    return {
        "id": faq.id,
        "pregunta": faq.pregunta,
        "respuesta": faq.respuesta,
        "dependencia_id": faq.dependencia_id,
        "dependencia_nombre": faq.dependencia.nombre if faq.dependencia else "",
        "subdependencia_id": faq.subdependencia_id or "",
        "subdependencia_nombre": faq.subdependencia.nombre if faq.subdependencia else "",
        "tema": faq.tema or "",
        "palabras_clave": list(faq.palabras_clave or []),
        "orden": faq.orden or 0,
        "activo": bool(faq.activo),
        "created_at": format_datetime(faq.created_at),
        "updated_at": format_datetime(faq.updated_at),
    }


def collect_faq_rows(
    session: Session,
    dependencia_id: str | None = None,
    activo: bool | None = None,
) -> List[Dict[str, Any]]:
    q = session.query(FAQ).options(joinedload(FAQ.dependencia), joinedload(FAQ.subdependencia))
    if dependencia_id:
        q = q.filter(FAQ.dependencia_id == dependencia_id)
    if activo is not None:
        q = q.filter(FAQ.activo == activo)
    faqs = sorted(
        q.all(),
        key=lambda f: (normalize_text(f.dependencia.nombre if f.dependencia else ""), normalize_text(f.tema or ""), f.orden or 0),
    )
    return [faq_to_row(f) for f in faqs]


def export_faqs_to_csv(rows: List[Dict[str, Any]]) -> str:
    csv_rows = []
    for row in rows:
        csv_row = dict(row)
        csv_row["palabras_clave"] = join_list(row["palabras_clave"])
        csv_row["activo"] = format_bool(row["activo"])
        csv_rows.append(csv_row)
    return rows_to_csv(FAQ_HEADERS, csv_rows)


def export_faqs_to_json(rows: List[Dict[str, Any]]) -> str:
    return rows_to_json([{key: row.get(key) for key in FAQ_HEADERS} for row in rows])


def export_faqs(session: Session, fmt: str = "csv", **filters: Any) -> str:
    """Exporta las FAQs en "csv" o "json"."""
    fmt = check_format(fmt)
    rows = collect_faq_rows(session, **filters)
    logger.info(f"Exportando {len(rows)} FAQs en formato {fmt}")
    if fmt == "csv":
        return export_faqs_to_csv(rows)
    return export_faqs_to_json(rows)


def normalize_faq_record(raw: Dict[str, Any]) -> Dict[str, Any]:
    def pick(*keys: str) -> Any:
        for key in keys:
            if key in raw and raw[key] not in (None, ""):
                return raw[key]
        return None

    orden = pick("orden")
    return {
        "id": blank_to_none(pick("id")),
        "pregunta": blank_to_none(pick("pregunta")),
        "respuesta": blank_to_none(pick("respuesta")),
        "dependencia_id": blank_to_none(pick("dependencia_id")),
        "dependencia_nombre": blank_to_none(pick("dependencia_nombre", "dependencia")),
        "subdependencia_id": blank_to_none(pick("subdependencia_id")),
        "subdependencia_nombre": blank_to_none(pick("subdependencia_nombre", "subdependencia")),
        "tema": blank_to_none(pick("tema")),
        "palabras_clave": split_list(pick("palabras_clave")),
        "orden": orden,
        "activo": pick("activo"),
    }


def parse_faqs(text: str, fmt: str) -> List[Dict[str, Any]]:
    fmt = check_format(fmt)
    rows = csv_to_rows(text) if fmt == "csv" else json_to_rows(text)
    return [normalize_faq_record(row) for row in rows]


def validate_faq_record(record: Dict[str, Any]) -> List[str]:
    errors = []
    if not record.get("pregunta"):
        errors.append("La pregunta es requerida")
    if not record.get("respuesta"):
        errors.append("La respuesta es requerida")
    if not (record.get("dependencia_id") or record.get("dependencia_nombre") or record.get("subdependencia_id")):
        errors.append("La dependencia es requerida")
    orden = record.get("orden")
    if orden is not None:
        try:
            int(orden)
        except (TypeError, ValueError):
            errors.append(f"Orden inválido: {orden}")
    errors.extend(non_text_errors(record, FAQ_TEXT_FIELDS))
    return errors


def _resolve_org(session: Session, record: Dict[str, Any]) -> tuple[str, str | None]:
    """Devuelve (dependencia_id, subdependencia_id) a partir de ids o nombres."""
    subdependencia = get_subdependencia(session, record["subdependencia_id"]) if record.get("subdependencia_id") else None

    dependencia: Dependencia | None = None
    if record.get("dependencia_id"):
        dependencia = get_dependencia(session, record["dependencia_id"])
    if not dependencia and record.get("dependencia_nombre"):
        dependencia = get_dependencia_by_nombre(session, record["dependencia_nombre"])
    if not dependencia and subdependencia:
        dependencia = subdependencia.dependencia
    if not dependencia:
        raise ValueError(
            f"Dependencia {record.get('dependencia_id') or record.get('dependencia_nombre')} no encontrada"
        )

    if not subdependencia and record.get("subdependencia_nombre"):
        target = normalize_text(record["subdependencia_nombre"]).strip()
        subdependencia = next(
            (s for s in dependencia.subdependencias if normalize_text(s.nombre).strip() == target),
            None,
        )
        if not subdependencia:
            raise ValueError(f"Subdependencia {record['subdependencia_nombre']} no encontrada")

    return dependencia.id, subdependencia.id if subdependencia else None


def _find_existing(session: Session, record: Dict[str, Any], dependencia_id: str) -> FAQ | None:
    if record.get("id"):
        faq = faqs_db.get_faq(session, record["id"])
        if faq:
            return faq
    target = normalize_for_search(record["pregunta"])
    for faq in session.query(FAQ).filter_by(dependencia_id=dependencia_id):
        if normalize_for_search(faq.pregunta) == target:
            return faq
    return None


def import_faqs(
    session: Session,
    records: List[Dict[str, Any]],
    conflict_strategy: str = "update",
) -> ImportResult:
    """
    Importa FAQs normalizadas (ver `parse_faqs`).

    Raises:
        ValueError: Si la estrategia de conflicto es inválida
    """
    check_conflict_strategy(conflict_strategy)
    result = ImportResult()

    row_number = 0
    for batch in batched(records):
        for record in batch:
            row_number += 1
            errors = validate_faq_record(record)
            if errors:
                result.errors.append(f"Fila {row_number}: {'; '.join(errors)}")
                continue

            existing = None
            try:
                dependencia_id, subdependencia_id = _resolve_org(session, record)
                existing = _find_existing(session, record, dependencia_id)
                if existing and conflict_strategy == "skip":
                    result.skipped += 1
                    continue

                data = {
                    "pregunta": record["pregunta"],
                    "respuesta": record["respuesta"],
                    "dependencia_id": dependencia_id,
                    "subdependencia_id": subdependencia_id,
                    "tema": record.get("tema"),
                    "palabras_clave": record.get("palabras_clave") or [],
                    "orden": int(record["orden"]) if record.get("orden") is not None else 0,
                    "activo": parse_bool(record.get("activo"), default=True),
                }
                if existing and conflict_strategy == "update":
                    faqs_db.update_faq(session, existing.id, data)
                    result.updated += 1
                else:
                    faqs_db.create_faq(session, data)
                    result.created += 1
                session.flush()
            except ValueError as e:
                if existing is not None:
                    session.expire(existing)
                result.errors.append(f"Fila {row_number}: {e}")

        logger.info(f"Importación de FAQs: {row_number}/{len(records)} registros procesados")

    logger.info(result.message)
    return result
