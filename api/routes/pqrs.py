"""
Endpoints de PQRS (peticiones, quejas, reclamos y sugerencias).

Este endpoint maneja:
- POST /api/v1/pqrs: Radicar una PQRS (público)
- GET /api/v1/pqrs/radicado/{numero_radicado}: Consultar por radicado (público)
- GET /api/v1/pqrs: Buscar PQRS (funcionarios)
- GET /api/v1/pqrs/stats: Estadísticas (funcionarios)
- GET /api/v1/pqrs/{pqrs_id}: Obtener una PQRS (funcionarios)
- PATCH /api/v1/pqrs/{pqrs_id}/estado: Cambiar estado / responder (funcionarios)
- DELETE /api/v1/pqrs/{pqrs_id}: Eliminar (admin)
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import IntegrityError

from portal_core.db.database import get_db_session
from portal_core.db.models import PQRS
from portal_core.db.pqrs import (
    create_pqrs,
    delete_pqrs,
    get_pqrs,
    get_pqrs_by_radicado,
    get_pqrs_stats,
    search_pqrs,
    update_pqrs_status,
)

from ..dependencies import CurrentUser, require_permission
from ..models.requests import (
    PageResponse,
    PQRSCreateRequest,
    PQRSEstado,
    PQRSResponse,
    PQRSStatusUpdateRequest,
    PQRSTipo,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/pqrs", tags=["pqrs"])


def _to_response(pqrs: PQRS) -> PQRSResponse:
    return PQRSResponse(
        id=pqrs.id,
        tipo=pqrs.tipo,
        nombre=pqrs.nombre,
        email=pqrs.email,
        telefono=pqrs.telefono,
        dependencia_id=pqrs.dependencia_id,
        dependencia_nombre=pqrs.dependencia.nombre if pqrs.dependencia else None,
        asunto=pqrs.asunto,
        descripcion=pqrs.descripcion,
        estado=pqrs.estado,
        numero_radicado=pqrs.numero_radicado,
        respuesta=pqrs.respuesta,
        fecha_respuesta=pqrs.fecha_respuesta.isoformat() if pqrs.fecha_respuesta else None,
        created_at=pqrs.created_at.isoformat(),
        updated_at=pqrs.updated_at.isoformat(),
    )


@router.post("", response_model=PQRSResponse, status_code=201)
async def create_pqrs_endpoint(request: PQRSCreateRequest):
    """
    Radica una PQRS. Devuelve el número de radicado para su seguimiento.

    Raises:
        400: Campos faltantes, email inválido o dependencia inexistente
    """
    with get_db_session() as session:
        try:
            pqrs = create_pqrs(session, request.model_dump(mode="json"))
            session.refresh(pqrs)
            return _to_response(pqrs)
        except HTTPException:
            raise
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except IntegrityError as e:
            session.rollback()
            raise HTTPException(status_code=400, detail=f"Error al radicar PQRS: {str(e)}") from e
        except Exception as e:
            session.rollback()
            raise HTTPException(status_code=500, detail=f"Error interno: {str(e)}") from e


@router.get("/radicado/{numero_radicado}", response_model=PQRSResponse)
async def get_pqrs_by_radicado_endpoint(numero_radicado: str):
    with get_db_session() as session:
        pqrs = get_pqrs_by_radicado(session, numero_radicado)
        if not pqrs:
            raise HTTPException(status_code=404, detail=f"PQRS con radicado {numero_radicado} no encontrada")
        return _to_response(pqrs)


@router.get("", response_model=PageResponse[PQRSResponse])
async def search_pqrs_endpoint(
    query: Optional[str] = None,
    tipo: Optional[PQRSTipo] = None,
    estado: Optional[PQRSEstado] = None,
    dependencia_id: Optional[str] = None,
    fecha_desde: Optional[datetime] = None,
    fecha_hasta: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=200),
    user: CurrentUser = Depends(require_permission("pqrs.read")),
):
    """Busca PQRS (más recientes primero). `query` cubre radicado, asunto, descripción y nombre."""
    with get_db_session() as session:
        result = search_pqrs(
            session,
            query=query,
            tipo=tipo.value if tipo else None,
            estado=estado.value if estado else None,
            dependencia_id=dependencia_id,
            fecha_desde=fecha_desde,
            fecha_hasta=fecha_hasta,
            page=page,
            limit=limit,
        )
        return PageResponse[PQRSResponse](
            items=[_to_response(p) for p in result.items],
            total=result.total,
            page=result.page,
            limit=result.limit,
            total_pages=result.total_pages,
        )


@router.get("/stats", dependencies=[Depends(require_permission("pqrs.read"))])
async def get_pqrs_stats_endpoint():
    """Totales por tipo y estado, PQRS del mes y tiempo promedio de respuesta en días."""
    with get_db_session() as session:
        return get_pqrs_stats(session)


@router.get("/{pqrs_id}", response_model=PQRSResponse, dependencies=[Depends(require_permission("pqrs.read"))])
async def get_pqrs_endpoint(pqrs_id: str):
    with get_db_session() as session:
        pqrs = get_pqrs(session, pqrs_id)
        if not pqrs:
            raise HTTPException(status_code=404, detail=f"PQRS {pqrs_id} no encontrada")
        return _to_response(pqrs)


@router.patch("/{pqrs_id}/estado", response_model=PQRSResponse)
async def update_pqrs_status_endpoint(
    pqrs_id: str,
    request: PQRSStatusUpdateRequest,
    user: CurrentUser = Depends(require_permission("pqrs.update")),
):
    """
    Cambia el estado de una PQRS. Si se envía respuesta se registra la fecha de respuesta.

    Raises:
        404: Si la PQRS no existe
    """
    with get_db_session() as session:
        try:
            if not get_pqrs(session, pqrs_id):
                raise HTTPException(status_code=404, detail=f"PQRS {pqrs_id} no encontrada")
            pqrs = update_pqrs_status(session, pqrs_id, request.estado.value, request.respuesta)
            session.flush()
            logger.info(f"PQRS {pqrs.numero_radicado} -> {pqrs.estado} (por {user.email or user.id})")
            return _to_response(pqrs)
        except HTTPException:
            raise
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except Exception as e:
            session.rollback()
            raise HTTPException(status_code=500, detail=f"Error interno: {str(e)}") from e


@router.delete("/{pqrs_id}", dependencies=[Depends(require_permission("pqrs.delete"))])
async def delete_pqrs_endpoint(pqrs_id: str):
    with get_db_session() as session:
        try:
            if not get_pqrs(session, pqrs_id):
                raise HTTPException(status_code=404, detail=f"PQRS {pqrs_id} no encontrada")
            delete_pqrs(session, pqrs_id)
            session.flush()
            return {"message": "PQRS eliminada correctamente"}
        except HTTPException:
            raise
        except Exception as e:
            session.rollback()
            raise HTTPException(status_code=500, detail=f"Error interno: {str(e)}") from e
