"""
Endpoints para gestionar subdependencias.

Este endpoint maneja:
- GET /api/v1/subdependencias: Listar subdependencias (filtro por dependencia)
- GET /api/v1/subdependencias/{subdependencia_id}: Obtener una subdependencia
- POST /api/v1/subdependencias: Crear una subdependencia
- PUT /api/v1/subdependencias/{subdependencia_id}: Actualizar una subdependencia
- DELETE /api/v1/subdependencias/{subdependencia_id}: Eliminar una subdependencia
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import IntegrityError

from portal_core.db.database import get_db_session
from portal_core.db.helpers import (
    create_subdependencia,
    delete_subdependencia,
    get_subdependencia,
    list_subdependencias,
    update_subdependencia,
)
from portal_core.db.models import Subdependencia

from ..dependencies import require_permission
from ..models.requests import (
    PageResponse,
    SubdependenciaCreateRequest,
    SubdependenciaResponse,
    SubdependenciaUpdateRequest,
)

router = APIRouter(prefix="/api/v1/subdependencias", tags=["subdependencias"])


def _to_response(subdependencia: Subdependencia, counts: dict | None = None) -> SubdependenciaResponse:
    counts = counts or {}
    return SubdependenciaResponse(
        id=subdependencia.id,
        codigo=subdependencia.codigo,
        nombre=subdependencia.nombre,
        descripcion=subdependencia.descripcion,
        dependencia_id=subdependencia.dependencia_id,
        dependencia_nombre=subdependencia.dependencia.nombre if subdependencia.dependencia else None,
        activo=subdependencia.activo,
        tramites_count=counts.get("tramites_count", 0),
        opas_count=counts.get("opas_count", 0),
        created_at=subdependencia.created_at.isoformat(),
        updated_at=subdependencia.updated_at.isoformat(),
    )


@router.get("", response_model=PageResponse[SubdependenciaResponse])
async def list_subdependencias_endpoint(
    query: Optional[str] = None,
    dependencia_id: Optional[str] = None,
    activo: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=200),
):
    """Lista subdependencias ordenadas por nombre, con conteos de trámites y OPAs."""
    with get_db_session() as session:
        result = list_subdependencias(
            session, query=query, dependencia_id=dependencia_id, activo=activo, page=page, limit=limit
        )
        return PageResponse[SubdependenciaResponse](
            items=[_to_response(item["subdependencia"], item) for item in result.items],
            total=result.total,
            page=result.page,
            limit=result.limit,
            total_pages=result.total_pages,
        )


@router.get("/{subdependencia_id}", response_model=SubdependenciaResponse)
async def get_subdependencia_endpoint(subdependencia_id: str):
    with get_db_session() as session:
        subdependencia = get_subdependencia(session, subdependencia_id)
        if not subdependencia:
            raise HTTPException(status_code=404, detail=f"Subdependencia {subdependencia_id} no encontrada")
        return _to_response(subdependencia)


@router.post(
    "",
    response_model=SubdependenciaResponse,
    status_code=201,
    dependencies=[Depends(require_permission("catalog.write"))],
)
async def create_subdependencia_endpoint(request: SubdependenciaCreateRequest):
    """
    Crea una subdependencia dentro de una dependencia existente.

    Raises:
        400: Si la dependencia no existe o el código se repite
    """
    with get_db_session() as session:
        try:
            subdependencia = create_subdependencia(
                session,
                dependencia_id=request.dependencia_id,
                codigo=request.codigo,
                nombre=request.nombre,
                descripcion=request.descripcion,
                activo=request.activo,
            )
            return _to_response(subdependencia)
        except HTTPException:
            raise
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except IntegrityError as e:
            session.rollback()
            raise HTTPException(status_code=400, detail=f"Error al crear subdependencia: {str(e)}") from e
        except Exception as e:
            session.rollback()
            raise HTTPException(status_code=500, detail=f"Error interno: {str(e)}") from e


@router.put(
    "/{subdependencia_id}",
    response_model=SubdependenciaResponse,
    dependencies=[Depends(require_permission("catalog.write"))],
)
async def update_subdependencia_endpoint(subdependencia_id: str, request: SubdependenciaUpdateRequest):
    with get_db_session() as session:
        try:
            if not get_subdependencia(session, subdependencia_id):
                raise HTTPException(status_code=404, detail=f"Subdependencia {subdependencia_id} no encontrada")
            subdependencia = update_subdependencia(
                session, subdependencia_id, request.model_dump(exclude_unset=True)
            )
            session.flush()
            session.refresh(subdependencia)
            return _to_response(subdependencia)
        except HTTPException:
            raise
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except IntegrityError as e:
            session.rollback()
            raise HTTPException(status_code=400, detail=f"Error al actualizar subdependencia: {str(e)}") from e
        except Exception as e:
            session.rollback()
            raise HTTPException(status_code=500, detail=f"Error interno: {str(e)}") from e


@router.delete("/{subdependencia_id}", dependencies=[Depends(require_permission("catalog.write"))])
async def delete_subdependencia_endpoint(subdependencia_id: str):
    """
    Elimina una subdependencia sin trámites, OPAs ni FAQs.

    Raises:
        404: Si no existe
        400: Si tiene elementos asociados
    """
    with get_db_session() as session:
        try:
            if not get_subdependencia(session, subdependencia_id):
                raise HTTPException(status_code=404, detail=f"Subdependencia {subdependencia_id} no encontrada")
            delete_subdependencia(session, subdependencia_id)
            session.flush()
            return {"message": "Subdependencia eliminada correctamente"}
        except HTTPException:
            raise
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except Exception as e:
            session.rollback()
            raise HTTPException(status_code=500, detail=f"Error interno: {str(e)}") from e
