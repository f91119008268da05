"""
Endpoints para gestionar trámites municipales.

Este endpoint maneja:
- GET /api/v1/tramites: Listar trámites (búsqueda y filtros)
- GET /api/v1/tramites/activos: Trámites activos (sin paginar)
- GET /api/v1/tramites/{tramite_id}: Obtener un trámite
- POST /api/v1/tramites: Crear un trámite
- PUT /api/v1/tramites/{tramite_id}: Actualizar un trámite
- DELETE /api/v1/tramites/{tramite_id}: Eliminar un trámite
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import IntegrityError

from portal_core.db.database import get_db_session
from portal_core.db.models import Tramite
from portal_core.db.services import (
    create_tramite,
    delete_tramite,
    get_tramite,
    list_active_tramites,
    list_tramites,
    update_tramite,
)

from ..dependencies import require_permission
from ..models.requests import PageResponse, TramiteCreateRequest, TramiteResponse, TramiteUpdateRequest

router = APIRouter(prefix="/api/v1/tramites", tags=["tramites"])


def _to_response(tramite: Tramite) -> TramiteResponse:
    sub = tramite.subdependencia
    dep = sub.dependencia if sub else None
    return TramiteResponse(
        id=tramite.id,
        codigo_unico=tramite.codigo_unico,
        nombre=tramite.nombre,
        descripcion=tramite.descripcion,
        formulario=tramite.formulario,
        tiempo_respuesta=tramite.tiempo_respuesta,
        tiene_pago=tramite.tiene_pago,
        requisitos=tramite.requisitos or [],
        instructivo=tramite.instructivo or [],
        modalidad=tramite.modalidad,
        categoria=tramite.categoria,
        observaciones=tramite.observaciones,
        visualizacion_suit=tramite.visualizacion_suit,
        visualizacion_gov=tramite.visualizacion_gov,
        subdependencia_id=tramite.subdependencia_id,
        subdependencia_nombre=sub.nombre if sub else None,
        dependencia_id=dep.id if dep else None,
        dependencia_nombre=dep.nombre if dep else None,
        activo=tramite.activo,
        created_at=tramite.created_at.isoformat(),
        updated_at=tramite.updated_at.isoformat(),
    )


@router.get("", response_model=PageResponse[TramiteResponse])
async def list_tramites_endpoint(
    query: Optional[str] = None,
    subdependencia_id: Optional[str] = None,
    dependencia_id: Optional[str] = None,
    activo: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=200),
):
    """
    Lista trámites ordenados por nombre.

    `query` busca (sin importar tildes) en código, nombre, formulario y descripción.
    """
    with get_db_session() as session:
        result = list_tramites(
            session,
            query=query,
            subdependencia_id=subdependencia_id,
            dependencia_id=dependencia_id,
            activo=activo,
            page=page,
            limit=limit,
        )
        return PageResponse[TramiteResponse](
            items=[_to_response(t) for t in result.items],
            total=result.total,
            page=result.page,
            limit=result.limit,
            total_pages=result.total_pages,
        )


@router.get("/activos", response_model=list[TramiteResponse])
async def list_active_tramites_endpoint():
    with get_db_session() as session:
        return [_to_response(t) for t in list_active_tramites(session)]


@router.get("/{tramite_id}", response_model=TramiteResponse)
async def get_tramite_endpoint(tramite_id: str):
    with get_db_session() as session:
        tramite = get_tramite(session, tramite_id)
        if not tramite:
            raise HTTPException(status_code=404, detail=f"Trámite {tramite_id} no encontrado")
        return _to_response(tramite)


@router.post(
    "",
    response_model=TramiteResponse,
    status_code=201,
    dependencies=[Depends(require_permission("catalog.write"))],
)
async def create_tramite_endpoint(request: TramiteCreateRequest):
    """
    Crea un trámite.

    Raises:
        400: Si no cumple las reglas (instructivo, URLs, descripción) o el código existe
        500: Error interno del servidor
    """
    with get_db_session() as session:
        try:
            tramite = create_tramite(session, request.model_dump(mode="json"))
            session.refresh(tramite)
            return _to_response(tramite)
        except HTTPException:
            raise
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except IntegrityError as e:
            session.rollback()
            raise HTTPException(status_code=400, detail=f"Error al crear trámite: {str(e)}") from e
        except Exception as e:
            session.rollback()
            raise HTTPException(status_code=500, detail=f"Error interno: {str(e)}") from e


@router.put(
    "/{tramite_id}",
    response_model=TramiteResponse,
    dependencies=[Depends(require_permission("catalog.write"))],
)
async def update_tramite_endpoint(tramite_id: str, request: TramiteUpdateRequest):
    """
    Actualiza parcialmente un trámite. El resultado se revalida completo.

    Raises:
        404: Si el trámite no existe
        400: Si el resultado viola alguna regla
    """
    with get_db_session() as session:
        try:
            if not get_tramite(session, tramite_id):
                raise HTTPException(status_code=404, detail=f"Trámite {tramite_id} no encontrado")
            tramite = update_tramite(session, tramite_id, request.model_dump(mode="json", exclude_unset=True))
            session.flush()
            session.refresh(tramite)
            return _to_response(tramite)
        except HTTPException:
            raise
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except IntegrityError as e:
            session.rollback()
            raise HTTPException(status_code=400, detail=f"Error al actualizar trámite: {str(e)}") from e
        except Exception as e:
            session.rollback()
            raise HTTPException(status_code=500, detail=f"Error interno: {str(e)}") from e


@router.delete("/{tramite_id}", dependencies=[Depends(require_permission("catalog.write"))])
async def delete_tramite_endpoint(tramite_id: str):
    with get_db_session() as session:
        try:
            if not get_tramite(session, tramite_id):
                raise HTTPException(status_code=404, detail=f"Trámite {tramite_id} no encontrado")
            delete_tramite(session, tramite_id)
            session.flush()
            return {"message": "Trámite eliminado correctamente"}
        except HTTPException:
            raise
        except Exception as e:
            session.rollback()
            raise HTTPException(status_code=500, detail=f"Error interno: {str(e)}") from e
