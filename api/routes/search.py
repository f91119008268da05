"""
Endpoints de búsqueda unificada (trámites, OPAs y FAQs).

- GET /api/v1/search: Búsqueda en los tres tipos
- GET /api/v1/search/tramites-opas: Búsqueda sólo en trámites y OPAs
- GET /api/v1/search/suggestions: Sugerencias para autocompletar
- GET /api/v1/search/stats: Totales por tipo
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from portal_core.db.database import get_db_session
from portal_core.db.helpers import Page
from portal_core.search import (
    SearchFilters,
    get_search_stats,
    get_search_suggestions,
    search,
    search_tramites_and_opas,
)

router = APIRouter(prefix="/api/v1/search", tags=["search"])


def _filters(
    query: str,
    tipo: str,
    dependencia: str,
    subdependencia_id: str,
    tipo_pago: str,
    activo: Optional[bool],
    page: int,
    limit: int,
) -> SearchFilters:
    return SearchFilters(
        query=query,
        tipo=tipo,
        dependencia=dependencia,
        subdependencia_id=subdependencia_id,
        tipo_pago=tipo_pago,
        activo=activo,
        page=page,
        limit=limit,
    )


def _page_to_dict(page: Page) -> dict:
    return {
        "items": [r.to_dict() for r in page.items],
        "total": page.total,
        "page": page.page,
        "limit": page.limit,
        "total_pages": page.total_pages,
    }


@router.get("")
async def search_endpoint(
    query: str = "",
    tipo: str = Query("", description="tramite | opa | faq (vacío = todos)"),
    dependencia: str = Query("", description="Nombre exacto de la dependencia"),
    subdependencia_id: str = "",
    tipo_pago: str = Query("", description="gratuito | con_pago (vacío = todos)"),
    activo: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    """
    Búsqueda unificada insensible a tildes y mayúsculas.

    Todas las palabras de `query` deben aparecer en el registro. Los resultados
    cuyo nombre contiene la consulta aparecen primero.

    Raises:
        400: Si `tipo` o `tipo_pago` no son válidos
    """
    with get_db_session() as session:
        try:
            filters = _filters(query, tipo, dependencia, subdependencia_id, tipo_pago, activo, page, limit)
            return _page_to_dict(search(session, filters))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e


@router.get("/tramites-opas")
async def search_tramites_opas_endpoint(
    query: str = "",
    tipo: str = Query("", description="tramite | opa (vacío = ambos)"),
    dependencia: str = "",
    subdependencia_id: str = "",
    tipo_pago: str = "",
    activo: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    with get_db_session() as session:
        try:
            filters = _filters(query, tipo, dependencia, subdependencia_id, tipo_pago, activo, page, limit)
            return _page_to_dict(search_tramites_and_opas(session, filters))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e


@router.get("/suggestions", response_model=list[str])
async def search_suggestions_endpoint(query: str = "", limit: int = Query(5, ge=1, le=20)):
    with get_db_session() as session:
        return get_search_suggestions(session, query, limit)


@router.get("/stats")
async def search_stats_endpoint():
    with get_db_session() as session:
        return get_search_stats(session)
