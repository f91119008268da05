"""
Endpoints para gestionar OPAs (órdenes de pago y autorización).

Este endpoint maneja:
- GET /api/v1/opas: Listar OPAs (búsqueda y filtros)
- GET /api/v1/opas/activas: OPAs activas (sin paginar)
- GET /api/v1/opas/{opa_id}: Obtener una OPA
- POST /api/v1/opas: Crear una OPA
- PUT /api/v1/opas/{opa_id}: Actualizar una OPA
- DELETE /api/v1/opas/{opa_id}: Eliminar una OPA
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import IntegrityError

from portal_core.db.database import get_db_session
from portal_core.db.models import OPA
from portal_core.db.services import (
    create_opa,
    delete_opa,
    get_opa,
    list_active_opas,
    list_opas,
    update_opa,
)

from ..dependencies import require_permission
from ..models.requests import OPACreateRequest, OPAResponse, OPAUpdateRequest, PageResponse

router = APIRouter(prefix="/api/v1/opas", tags=["opas"])


def _to_response(opa: OPA) -> OPAResponse:
    sub = opa.subdependencia
    dep = sub.dependencia if sub else None
    return OPAResponse(
        id=opa.id,
        codigo_opa=opa.codigo_opa,
        nombre=opa.nombre,
        descripcion=opa.descripcion,
        formulario=opa.formulario,
        tiempo_respuesta=opa.tiempo_respuesta,
        tiene_pago=opa.tiene_pago,
        requisitos=opa.requisitos or [],
        visualizacion_suit=opa.visualizacion_suit,
        visualizacion_gov=opa.visualizacion_gov,
        subdependencia_id=opa.subdependencia_id,
        subdependencia_nombre=sub.nombre if sub else None,
        dependencia_id=dep.id if dep else None,
        dependencia_nombre=dep.nombre if dep else None,
        activo=opa.activo,
        created_at=opa.created_at.isoformat(),
        updated_at=opa.updated_at.isoformat(),
    )


@router.get("", response_model=PageResponse[OPAResponse])
async def list_opas_endpoint(
    query: Optional[str] = None,
    subdependencia_id: Optional[str] = None,
    dependencia_id: Optional[str] = None,
    activo: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=200),
):
    """Lista OPAs ordenadas por nombre. `query` busca en código, nombre y descripción."""
    with get_db_session() as session:
        result = list_opas(
            session,
            query=query,
            subdependencia_id=subdependencia_id,
            dependencia_id=dependencia_id,
            activo=activo,
            page=page,
            limit=limit,
        )
        return PageResponse[OPAResponse](
            items=[_to_response(o) for o in result.items],
            total=result.total,
            page=result.page,
            limit=result.limit,
            total_pages=result.total_pages,
        )


@router.get("/activas", response_model=list[OPAResponse])
async def list_active_opas_endpoint():
    with get_db_session() as session:
        return [_to_response(o) for o in list_active_opas(session)]


@router.get("/{opa_id}", response_model=OPAResponse)
async def get_opa_endpoint(opa_id: str):
    with get_db_session() as session:
        opa = get_opa(session, opa_id)
        if not opa:
            raise HTTPException(status_code=404, detail=f"OPA {opa_id} no encontrada")
        return _to_response(opa)


@router.post(
    "",
    response_model=OPAResponse,
    status_code=201,
    dependencies=[Depends(require_permission("catalog.write"))],
)
async def create_opa_endpoint(request: OPACreateRequest):
    """
    Crea una OPA.

    Raises:
        400: Si no cumple las reglas (requisitos, tiempo de respuesta, URLs) o el código existe
    """
    with get_db_session() as session:
        try:
            opa = create_opa(session, request.model_dump(mode="json"))
            session.refresh(opa)
            return _to_response(opa)
        except HTTPException:
            raise
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except IntegrityError as e:
            session.rollback()
            raise HTTPException(status_code=400, detail=f"Error al crear OPA: {str(e)}") from e
        except Exception as e:
            session.rollback()
            raise HTTPException(status_code=500, detail=f"Error interno: {str(e)}") from e


@router.put(
    "/{opa_id}",
    response_model=OPAResponse,
    dependencies=[Depends(require_permission("catalog.write"))],
)
async def update_opa_endpoint(opa_id: str, request: OPAUpdateRequest):
    with get_db_session() as session:
        try:
            if not get_opa(session, opa_id):
                raise HTTPException(status_code=404, detail=f"OPA {opa_id} no encontrada")
            opa = update_opa(session, opa_id, request.model_dump(mode="json", exclude_unset=True))
            session.flush()
            session.refresh(opa)
            return _to_response(opa)
        except HTTPException:
            raise
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except IntegrityError as e:
            session.rollback()
            raise HTTPException(status_code=400, detail=f"Error al actualizar OPA: {str(e)}") from e
        except Exception as e:
            session.rollback()
            raise HTTPException(status_code=500, detail=f"Error interno: {str(e)}") from e


@router.delete("/{opa_id}", dependencies=[Depends(require_permission("catalog.write"))])
async def delete_opa_endpoint(opa_id: str):
    with get_db_session() as session:
        try:
            if not get_opa(session, opa_id):
                raise HTTPException(status_code=404, detail=f"OPA {opa_id} no encontrada")
            delete_opa(session, opa_id)
            session.flush()
            return {"message": "OPA eliminada correctamente"}
        except HTTPException:
            raise
        except Exception as e:
            session.rollback()
            raise HTTPException(status_code=500, detail=f"Error interno: {str(e)}") from e
