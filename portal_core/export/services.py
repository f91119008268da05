"""
Exportación e importación del catálogo de servicios (trámites + OPAs).

Al importar, cada registro se resuelve contra un servicio existente
(primero por `id`, después por código) y se aplica la estrategia de conflicto:

- "update": actualiza el existente, crea si no existe.
- "skip":   deja el existente intacto, crea si no existe.
- "create": crea siempre; si el código ya existe se reporta como error.

Un registro inválido se reporta en `ImportResult.errors` y no interrumpe el
resto de la importación.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from sqlalchemy.orm import Session, joinedload

from ..db import services as services_db
from ..db.helpers import get_dependencia, get_dependencia_by_nombre, get_subdependencia
from ..db.models import OPA, Subdependencia, Tramite
from ..text_normalization import normalize_text
from ..unified_services import SERVICE_TYPES
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

SERVICE_HEADERS = [
    "id", "codigo", "nombre", "descripcion", "tipo_servicio", "categoria",
    "dependencia_id", "dependencia_nombre", "subdependencia_id", "subdependencia_nombre",
    "requiere_pago", "tiempo_respuesta", "activo", "requisitos", "instrucciones",
    "url_suit", "url_gov", "created_at", "updated_at",
]

SERVICE_TEXT_FIELDS = (
    "id", "codigo", "nombre", "descripcion", "categoria", "dependencia_id",
    "dependencia_nombre", "subdependencia_id", "subdependencia_nombre",
    "tiempo_respuesta", "visualizacion_suit", "visualizacion_gov",
)


# ============================================================
# Exportación
# ============================================================

def service_to_row(obj: Tramite | OPA) -> Dict[str, Any]:
    """Fila de exportación (valores nativos: listas, bools, fechas ISO)."""
    sub = obj.subdependencia
    dep = sub.dependencia if sub else None
    is_tramite = isinstance(obj, Tramite)
    return {
        "id": obj.id,
        "codigo": obj.codigo_unico if is_tramite else obj.codigo_opa,
        "nombre": obj.nombre,
        "descripcion": obj.descripcion or "",
        "tipo_servicio": "tramite" if is_tramite else "opa",
        "categoria": (obj.categoria or "") if is_tramite else "",
        "dependencia_id": dep.id if dep else "",
        "dependencia_nombre": dep.nombre if dep else "",
        "subdependencia_id": sub.id if sub else "",
        "subdependencia_nombre": sub.nombre if sub else "",
        "requiere_pago": bool(obj.tiene_pago),
        "tiempo_respuesta": obj.tiempo_respuesta or "",
        "activo": bool(obj.activo),
        "requisitos": list(obj.requisitos or []),
        "instrucciones": list(obj.instructivo or []) if is_tramite else [],
        "url_suit": obj.visualizacion_suit or "",
        "url_gov": obj.visualizacion_gov or "",
        "created_at": format_datetime(obj.created_at),
        "updated_at": format_datetime(obj.updated_at),
    }


def collect_service_rows(
    session: Session,
    service_type: str = "both",
    dependencia_id: str | None = None,
    activo: bool | None = None,
) -> List[Dict[str, Any]]:
    """Filas de exportación ordenadas por tipo y nombre."""
    rows = []
    for tipo, model in (("tramite", Tramite), ("opa", OPA)):
        if service_type not in ("both", tipo):
            continue
        q = session.query(model).options(joinedload(model.subdependencia).joinedload(Subdependencia.dependencia))
        if dependencia_id:
            q = q.join(Subdependencia, model.subdependencia_id == Subdependencia.id).filter(
                Subdependencia.dependencia_id == dependencia_id
            )
        if activo is not None:
            q = q.filter(model.activo == activo)
        objs = sorted(q.all(), key=lambda o: normalize_text(o.nombre))
        rows.extend(service_to_row(o) for o in objs)
    return rows


def export_services_to_csv(rows: List[Dict[str, Any]]) -> str:
    csv_rows = []
    for row in rows:
        csv_row = dict(row)
        csv_row["requisitos"] = join_list(row["requisitos"])
        csv_row["instrucciones"] = join_list(row["instrucciones"])
        csv_row["requiere_pago"] = format_bool(row["requiere_pago"])
        csv_row["activo"] = format_bool(row["activo"])
        csv_rows.append(csv_row)
    return rows_to_csv(SERVICE_HEADERS, csv_rows)


def export_services_to_json(rows: List[Dict[str, Any]]) -> str:
    return rows_to_json([{key: row.get(key) for key in SERVICE_HEADERS} for row in rows])


def export_services(session: Session, fmt: str = "csv", **filters: Any) -> str:
    """
    Exporta el catálogo de servicios.

    Args:
        session: Sesión de base de datos
        fmt: "csv" | "json"
        **filters: service_type, dependencia_id, activo (ver `collect_service_rows`)
    """
    fmt = check_format(fmt)
    rows = collect_service_rows(session, **filters)
    logger.info(f"Exportando {len(rows)} servicios en formato {fmt}")
    if fmt == "csv":
        return export_services_to_csv(rows)
    return export_services_to_json(rows)


# ============================================================
# Parseo y validación
# ============================================================

def normalize_service_record(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Lleva un registro crudo (CSV o JSON) al formato interno de importación.

    Acepta tanto los encabezados de exportación como los nombres de columna
    del modelo (`tipo`, `tiene_pago`, `instructivo`, `visualizacion_suit`, ...).
    """
    def pick(*keys: str) -> Any:
        for key in keys:
            if key in raw and raw[key] not in (None, ""):
                return raw[key]
        return None

    tipo = pick("tipo_servicio", "tipo")
    return {
        "id": blank_to_none(pick("id")),
        "codigo": blank_to_none(pick("codigo", "codigo_unico", "codigo_opa")),
        "nombre": blank_to_none(pick("nombre")),
        "descripcion": blank_to_none(pick("descripcion")),
        "tipo": normalize_text(str(tipo)).strip() if tipo else None,
        "categoria": blank_to_none(pick("categoria")),
        "dependencia_id": blank_to_none(pick("dependencia_id")),
        "dependencia_nombre": blank_to_none(pick("dependencia_nombre", "dependencia")),
        "subdependencia_id": blank_to_none(pick("subdependencia_id")),
        "subdependencia_nombre": blank_to_none(pick("subdependencia_nombre", "subdependencia")),
        "tiene_pago": pick("requiere_pago", "tiene_pago"),
        "tiempo_respuesta": blank_to_none(pick("tiempo_respuesta")),
        "activo": pick("activo"),
        "requisitos": split_list(pick("requisitos")),
        "instrucciones": split_list(pick("instrucciones", "instructivo")),
        "visualizacion_suit": blank_to_none(pick("url_suit", "visualizacion_suit")),
        "visualizacion_gov": blank_to_none(pick("url_gov", "visualizacion_gov")),
    }


def parse_services_csv(text: str) -> List[Dict[str, Any]]:
    return [normalize_service_record(row) for row in csv_to_rows(text)]


def parse_services_json(text: str) -> List[Dict[str, Any]]:
    return [normalize_service_record(row) for row in json_to_rows(text)]


def parse_services(text: str, fmt: str) -> List[Dict[str, Any]]:
    fmt = check_format(fmt)
    return parse_services_csv(text) if fmt == "csv" else parse_services_json(text)


def validate_service_record(record: Dict[str, Any]) -> List[str]:
    """Errores de validación de un registro normalizado (lista vacía si es válido)."""
    errors = []
    if not record.get("nombre"):
        errors.append("El nombre del servicio es requerido")
    if not record.get("codigo"):
        errors.append("El código del servicio es requerido")
    if not (record.get("subdependencia_id") or record.get("subdependencia_nombre")):
        errors.append("La subdependencia es requerida")
    if not (record.get("dependencia_id") or record.get("dependencia_nombre")):
        errors.append("La dependencia es requerida")
    if record.get("tipo") not in SERVICE_TYPES:
        errors.append("Tipo de servicio inválido")
    errors.extend(non_text_errors(record, SERVICE_TEXT_FIELDS))
    return errors


# ============================================================
# Importación
# ============================================================

def _resolve_subdependencia(session: Session, record: Dict[str, Any]) -> Subdependencia:
    if record.get("subdependencia_id"):
        subdependencia = get_subdependencia(session, record["subdependencia_id"])
        if subdependencia:
            return subdependencia

    dependencia = None
    if record.get("dependencia_id"):
        dependencia = get_dependencia(session, record["dependencia_id"])
    if not dependencia and record.get("dependencia_nombre"):
        dependencia = get_dependencia_by_nombre(session, record["dependencia_nombre"])
    if not dependencia:
        raise ValueError(
            f"Dependencia {record.get('dependencia_id') or record.get('dependencia_nombre')} no encontrada"
        )

    target = normalize_text(record.get("subdependencia_nombre") or "").strip()
    for subdependencia in dependencia.subdependencias:
        if target and normalize_text(subdependencia.nombre).strip() == target:
            return subdependencia
    raise ValueError(
        f"Subdependencia {record.get('subdependencia_id') or record.get('subdependencia_nombre')} no encontrada"
    )


def _model_data(record: Dict[str, Any], subdependencia_id: str, existing: Tramite | OPA | None) -> Dict[str, Any]:
    tipo = record["tipo"]
    data: Dict[str, Any] = {
        "nombre": record["nombre"],
        "descripcion": record.get("descripcion"),
        "tiempo_respuesta": record.get("tiempo_respuesta"),
        "requisitos": record.get("requisitos") or [],
        "visualizacion_suit": record.get("visualizacion_suit"),
        "visualizacion_gov": record.get("visualizacion_gov"),
        "subdependencia_id": subdependencia_id,
        "tiene_pago": parse_bool(record.get("tiene_pago"), default=bool(existing.tiene_pago) if existing else False),
        "activo": parse_bool(record.get("activo"), default=bool(existing.activo) if existing else True),
    }
    if tipo == "tramite":
        data["codigo_unico"] = record["codigo"]
        data["instructivo"] = record.get("instrucciones") or []
        data["categoria"] = record.get("categoria")
    else:
        data["codigo_opa"] = record["codigo"]
    return data


def _find_existing(session: Session, record: Dict[str, Any]) -> Tramite | OPA | None:
    if record["tipo"] == "tramite":
        getter, by_code = services_db.get_tramite, services_db.get_tramite_by_codigo
    else:
        getter, by_code = services_db.get_opa, services_db.get_opa_by_codigo
    existing = getter(session, record["id"]) if record.get("id") else None
    return existing or by_code(session, record["codigo"])


def import_services(
    session: Session,
    records: List[Dict[str, Any]],
    conflict_strategy: str = "update",
) -> ImportResult:
    """
    Importa registros normalizados (ver `parse_services`).

    Args:
        session: Sesión de base de datos
        records: Registros ya parseados
        conflict_strategy: "update" | "skip" | "create"

    Returns:
        ImportResult con contadores y errores por fila (fila 1 = primer registro)

    Raises:
        ValueError: Si la estrategia de conflicto es inválida
    """
    check_conflict_strategy(conflict_strategy)
    result = ImportResult()

    row_number = 0
    for batch in batched(records):
        for record in batch:
            row_number += 1
            errors = validate_service_record(record)
            if errors:
                result.errors.append(f"Fila {row_number}: {'; '.join(errors)}")
                continue

            existing = _find_existing(session, record)
            if existing and conflict_strategy == "skip":
                result.skipped += 1
                continue

            try:
                subdependencia = _resolve_subdependencia(session, record)
                use_existing = existing if conflict_strategy == "update" else None
                data = _model_data(record, subdependencia.id, use_existing)
                if use_existing is not None:
                    if record["tipo"] == "tramite":
                        services_db.update_tramite(session, use_existing.id, data)
                    else:
                        services_db.update_opa(session, use_existing.id, data)
                    result.updated += 1
                else:
                    if record["tipo"] == "tramite":
                        services_db.create_tramite(session, data)
                    else:
                        services_db.create_opa(session, data)
                    result.created += 1
                session.flush()
            except ValueError as e:
                if existing is not None:
                    # descarta cambios a medio aplicar en el existente
                    session.expire(existing)
                result.errors.append(f"Fila {row_number} ({record.get('codigo')}): {e}")

        logger.info(f"Importación de servicios: {row_number}/{len(records)} registros procesados")

    logger.info(result.message)
    return result
