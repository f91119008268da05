"""
portal_core.search
==================

Búsqueda unificada sobre trámites, OPAs y FAQs.

Los tres tipos se proyectan a un mismo `UnifiedSearchResult` para que el
buscador del portal pueda listarlos juntos. El filtrado de texto es en
memoria e ignora tildes, mayúsculas y puntuación: cada palabra de la
consulta debe aparecer en algún campo del registro.

Orden
-----
- Con consulta: primero los resultados cuyo nombre (o código) contiene la
  consulta completa, después el resto; dentro de cada grupo, más recientes
  primero.
- Sin consulta: más recientes primero.

Filtro de pago
--------------
`tipo_pago` ("gratuito" | "con_pago") aplica a trámites y OPAs. Las FAQs no
tienen pago asociado y quedan fuera cuando se filtra por pago.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session, joinedload

from .db.helpers import Page, paginate
from .db.models import FAQ, OPA, Subdependencia, Tramite
from .text_normalization import matches_all_terms, normalize_for_search

logger = logging.getLogger(__name__)

SEARCH_TYPES = ("tramite", "opa", "faq")
PAYMENT_FILTERS = ("gratuito", "con_pago")

SIN_DEPENDENCIA = "Sin dependencia"


@dataclass
class SearchFilters:
    query: str = ""
    tipo: str = ""                      # "" | tramite | opa | faq
    dependencia: str = ""               # nombre exacto de la dependencia
    subdependencia_id: str = ""
    tipo_pago: str = ""                 # "" | gratuito | con_pago
    activo: Optional[bool] = None
    page: int = 1
    limit: int = 10


@dataclass
class UnifiedSearchResult:
    id: str
    codigo: str
    nombre: str
    descripcion: str
    tipo: str
    dependencia: str
    subdependencia: str
    categoria: str
    tiempo_estimado: str
    tiene_pago: Optional[bool]
    estado: str
    tags: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    original_data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat() if self.created_at else None
        return data


def model_to_dict(obj: Any) -> Dict[str, Any]:
    """Columnas de un modelo ORM como dict (fechas en ISO 8601)."""
    data = {}
    for column in obj.__table__.columns:
        value = getattr(obj, column.key)
        data[column.key] = value.isoformat() if isinstance(value, datetime) else value
    return data


def _tags(*values: str | None) -> list[str]:
    return [v.lower() for v in values if v]


def _estado(activo: bool) -> str:
    return "activo" if activo else "inactivo"


def _tramite_result(tramite: Tramite) -> UnifiedSearchResult:
    sub = tramite.subdependencia
    dep = sub.dependencia if sub else None
    return UnifiedSearchResult(
        id=tramite.id,
        codigo=tramite.codigo_unico,
        nombre=tramite.nombre,
        descripcion=tramite.descripcion or tramite.formulario or "Trámite municipal",
        tipo="tramite",
        dependencia=dep.nombre if dep else SIN_DEPENDENCIA,
        subdependencia=sub.nombre if sub else "",
        categoria=tramite.categoria or "",
        tiempo_estimado=tramite.tiempo_respuesta or "",
        tiene_pago=tramite.tiene_pago,
        estado=_estado(tramite.activo),
        tags=_tags("tramite", "pago" if tramite.tiene_pago else "gratuito", sub.nombre if sub else None),
        created_at=tramite.created_at,
        original_data=model_to_dict(tramite),
    )


def _opa_result(opa: OPA) -> UnifiedSearchResult:
    sub = opa.subdependencia
    dep = sub.dependencia if sub else None
    lugar = (sub.nombre if sub else None) or (dep.nombre if dep else SIN_DEPENDENCIA)
    descripcion = opa.descripcion or (
        f"Servicio administrativo para {opa.nombre.lower()}. Disponible en {lugar}."
    )
    return UnifiedSearchResult(
        id=opa.id,
        codigo=opa.codigo_opa,
        nombre=opa.nombre,
        descripcion=descripcion,
        tipo="opa",
        dependencia=dep.nombre if dep else SIN_DEPENDENCIA,
        subdependencia=sub.nombre if sub else "",
        categoria="",
        tiempo_estimado=opa.tiempo_respuesta or "",
        tiene_pago=opa.tiene_pago,
        estado=_estado(opa.activo),
        tags=_tags("opa", "pago" if opa.tiene_pago else "gratuito", "autorizacion", sub.nombre if sub else None),
        created_at=opa.created_at,
        original_data=model_to_dict(opa),
    )


def _faq_result(faq: FAQ) -> UnifiedSearchResult:
    dep = faq.dependencia
    sub = faq.subdependencia
    return UnifiedSearchResult(
        id=faq.id,
        codigo=f"FAQ-{faq.id[:8]}",
        nombre=faq.pregunta,
        descripcion=faq.respuesta,
        tipo="faq",
        dependencia=dep.nombre if dep else SIN_DEPENDENCIA,
        subdependencia=sub.nombre if sub else "",
        categoria=faq.tema or "",
        tiempo_estimado="",
        tiene_pago=None,
        estado=_estado(faq.activo),
        tags=_tags("faq", "pregunta", "ayuda", faq.tema, dep.nombre if dep else None),
        created_at=faq.created_at,
        original_data=model_to_dict(faq),
    )


def _matches_dependencia(result: UnifiedSearchResult, dependencia: str) -> bool:
    return not dependencia or result.dependencia == dependencia


def _collect(session: Session, filters: SearchFilters, include_faqs: bool = True) -> list[UnifiedSearchResult]:
    tipo = filters.tipo or ""
    if tipo and tipo not in SEARCH_TYPES:
        raise ValueError(f"Tipo de búsqueda inválido: {tipo}. Opciones: {', '.join(SEARCH_TYPES)}")
    tipo_pago = filters.tipo_pago or ""
    if tipo_pago and tipo_pago not in PAYMENT_FILTERS:
        raise ValueError(f"Filtro de pago inválido: {tipo_pago}. Opciones: {', '.join(PAYMENT_FILTERS)}")

    results: list[UnifiedSearchResult] = []
    service_specs = (
        ("tramite", Tramite, _tramite_result,
         lambda t: [t.codigo_unico, t.nombre, t.descripcion, t.formulario, t.categoria]),
        ("opa", OPA, _opa_result,
         lambda o: [o.codigo_opa, o.nombre, o.descripcion]),
    )

    for kind, model, to_result, fields in service_specs:
        if tipo and tipo != kind:
            continue
        q = session.query(model).options(
            joinedload(model.subdependencia).joinedload(Subdependencia.dependencia)
        )
        if filters.subdependencia_id:
            q = q.filter(model.subdependencia_id == filters.subdependencia_id)
        if filters.activo is not None:
            q = q.filter(model.activo == filters.activo)
        if tipo_pago:
            q = q.filter(model.tiene_pago == (tipo_pago == "con_pago"))
        for obj in q.all():
            if not matches_all_terms(filters.query, fields(obj)):
                continue
            result = to_result(obj)
            if _matches_dependencia(result, filters.dependencia):
                results.append(result)

    if include_faqs and (not tipo or tipo == "faq") and not tipo_pago:
        q = session.query(FAQ).options(joinedload(FAQ.dependencia), joinedload(FAQ.subdependencia))
        if filters.subdependencia_id:
            q = q.filter(FAQ.subdependencia_id == filters.subdependencia_id)
        if filters.activo is not None:
            q = q.filter(FAQ.activo == filters.activo)
        for faq in q.all():
            if not matches_all_terms(filters.query, [faq.pregunta, faq.respuesta, faq.tema, *(faq.palabras_clave or [])]):
                continue
            result = _faq_result(faq)
            if _matches_dependencia(result, filters.dependencia):
                results.append(result)

    return results


def _sort_results(results: list[UnifiedSearchResult], query: str, match_codigo: bool = False) -> None:
    normalized_query = normalize_for_search(query)
    results.sort(key=lambda r: r.created_at or datetime.min, reverse=True)
    if normalized_query:
        def name_match(r: UnifiedSearchResult) -> int:
            hit = normalized_query in normalize_for_search(r.nombre)
            if match_codigo:
                hit = hit or normalized_query in normalize_for_search(r.codigo)
            return 0 if hit else 1
        # sort estable: mantiene el orden por fecha dentro de cada grupo
        results.sort(key=name_match)


def search(session: Session, filters: SearchFilters | None = None) -> Page:
    """
    Búsqueda unificada en trámites, OPAs y FAQs.

    Args:
        session: Sesión de base de datos
        filters: Filtros y paginación (ver `SearchFilters`)

    Returns:
        Page de `UnifiedSearchResult`

    Raises:
        ValueError: Si `tipo` o `tipo_pago` no son válidos
    """
    filters = filters or SearchFilters()
    results = _collect(session, filters)
    _sort_results(results, filters.query)
    logger.debug(f"Búsqueda '{filters.query}': {len(results)} resultados")
    return paginate(results, filters.page, filters.limit)


def search_tramites_and_opas(session: Session, filters: SearchFilters | None = None) -> Page:
    """Igual que `search` pero sin FAQs; la relevancia también mira el código."""
    filters = filters or SearchFilters()
    if filters.tipo == "faq":
        return paginate([], filters.page, filters.limit)
    results = _collect(session, filters, include_faqs=False)
    _sort_results(results, filters.query, match_codigo=True)
    return paginate(results, filters.page, filters.limit)


def get_search_suggestions(session: Session, query: str, limit: int = 5) -> list[str]:
    """
    Sugerencias para autocompletar: nombres y tags que contienen la consulta.

    Consultas de menos de 2 caracteres no generan sugerencias.
    """
    if not query or len(query.strip()) < 2:
        return []

    normalized_query = normalize_for_search(query)
    page = search(session, SearchFilters(query=query, activo=True, limit=20))

    suggestions: list[str] = []
    seen: set[str] = set()

    def add(text: str) -> None:
        key = normalize_for_search(text)
        if key and key not in seen and normalized_query in key:
            seen.add(key)
            suggestions.append(text)

    for result in page.items:
        add(result.nombre)
        for tag in result.tags:
            if len(tag) > 2:
                add(tag)
        if len(suggestions) >= limit:
            break
    return suggestions[:limit]


def get_search_stats(session: Session) -> Dict[str, int]:
    """Totales por tipo y total de elementos activos."""
    total_tramites = session.query(Tramite).count()
    total_opas = session.query(OPA).count()
    total_faqs = session.query(FAQ).count()
    total_active = (
        session.query(Tramite).filter(Tramite.activo.is_(True)).count()
        + session.query(OPA).filter(OPA.activo.is_(True)).count()
        + session.query(FAQ).filter(FAQ.activo.is_(True)).count()
    )
    return {
        "total_tramites": total_tramites,
        "total_opas": total_opas,
        "total_faqs": total_faqs,
        "total_active": total_active,
    }
