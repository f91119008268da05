"""
Endpoints para gestionar dependencias de la alcaldía.

Este endpoint maneja:
- GET /api/v1/dependencias: Listar dependencias (paginado, con conteos)
- GET /api/v1/dependencias/activas: Dependencias activas (para filtros)
- GET /api/v1/dependencias/{dependencia_id}: Obtener una dependencia
- POST /api/v1/dependencias: Crear una dependencia
- PUT /api/v1/dependencias/{dependencia_id}: Actualizar una dependencia
- DELETE /api/v1/dependencias/{dependencia_id}: Eliminar una dependencia
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import IntegrityError

from portal_core.db.database import get_db_session
from portal_core.db.helpers import (
    create_dependencia,
    delete_dependencia,
    get_dependencia,
    list_active_dependencias,
    list_dependencias,
    update_dependencia,
)
from portal_core.db.models import Dependencia

from ..dependencies import require_permission
from ..models.requests import (
    DependenciaCreateRequest,
    DependenciaResponse,
    DependenciaUpdateRequest,
    PageResponse,
)

router = APIRouter(prefix="/api/v1/dependencias", tags=["dependencias"])


def _to_response(dependencia: Dependencia, counts: dict | None = None) -> DependenciaResponse:
    counts = counts or {}
    return DependenciaResponse(
        id=dependencia.id,
        codigo=dependencia.codigo,
        nombre=dependencia.nombre,
        descripcion=dependencia.descripcion,
        activo=dependencia.activo,
        subdependencias_count=counts.get("subdependencias_count", 0),
        tramites_count=counts.get("tramites_count", 0),
        opas_count=counts.get("opas_count", 0),
        created_at=dependencia.created_at.isoformat(),
        updated_at=dependencia.updated_at.isoformat(),
    )


@router.get("", response_model=PageResponse[DependenciaResponse])
async def list_dependencias_endpoint(
    query: Optional[str] = None,
    activo: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
):
    """
    Lista dependencias ordenadas por código.

    Cada item incluye la cantidad de subdependencias, trámites y OPAs.
    """
    with get_db_session() as session:
        result = list_dependencias(session, query=query, activo=activo, page=page, limit=limit)
        return PageResponse[DependenciaResponse](
            items=[_to_response(item["dependencia"], item) for item in result.items],
            total=result.total,
            page=result.page,
            limit=result.limit,
            total_pages=result.total_pages,
        )


@router.get("/activas", response_model=list[DependenciaResponse])
async def list_active_dependencias_endpoint():
    """Dependencias activas ordenadas por nombre."""
    with get_db_session() as session:
        return [_to_response(d) for d in list_active_dependencias(session)]


@router.get("/{dependencia_id}", response_model=DependenciaResponse)
async def get_dependencia_endpoint(dependencia_id: str):
    """
    Obtiene una dependencia por su ID.

    Raises:
        404: Si la dependencia no existe
    """
    with get_db_session() as session:
        dependencia = get_dependencia(session, dependencia_id)
        if not dependencia:
            raise HTTPException(status_code=404, detail=f"Dependencia {dependencia_id} no encontrada")
        return _to_response(dependencia)


@router.post(
    "",
    response_model=DependenciaResponse,
    status_code=201,
    dependencies=[Depends(require_permission("catalog.write"))],
)
async def create_dependencia_endpoint(request: DependenciaCreateRequest):
    """
    Crea una nueva dependencia.

    Raises:
        400: Si faltan datos o el código ya existe
        500: Error interno del servidor
    """
    with get_db_session() as session:
        try:
            dependencia = create_dependencia(
                session,
                codigo=request.codigo,
                nombre=request.nombre,
                descripcion=request.descripcion,
                activo=request.activo,
            )
            return _to_response(dependencia)
        except HTTPException:
            raise
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except IntegrityError as e:
            session.rollback()
            raise HTTPException(status_code=400, detail=f"Error al crear dependencia: {str(e)}") from e
        except Exception as e:
            session.rollback()
            raise HTTPException(status_code=500, detail=f"Error interno: {str(e)}") from e


@router.put(
    "/{dependencia_id}",
    response_model=DependenciaResponse,
    dependencies=[Depends(require_permission("catalog.write"))],
)
async def update_dependencia_endpoint(dependencia_id: str, request: DependenciaUpdateRequest):
    """
    Actualiza parcialmente una dependencia.

    Raises:
        404: Si la dependencia no existe
        400: Si el nuevo código ya está en uso
    """
    with get_db_session() as session:
        try:
            if not get_dependencia(session, dependencia_id):
                raise HTTPException(status_code=404, detail=f"Dependencia {dependencia_id} no encontrada")
            dependencia = update_dependencia(session, dependencia_id, request.model_dump(exclude_unset=True))
            session.flush()
            return _to_response(dependencia)
        except HTTPException:
            raise
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except IntegrityError as e:
            session.rollback()
            raise HTTPException(status_code=400, detail=f"Error al actualizar dependencia: {str(e)}") from e
        except Exception as e:
            session.rollback()
            raise HTTPException(status_code=500, detail=f"Error interno: {str(e)}") from e


@router.delete("/{dependencia_id}", dependencies=[Depends(require_permission("organization.delete"))])
async def delete_dependencia_endpoint(dependencia_id: str):
    """
    Elimina una dependencia sin subdependencias, FAQs ni PQRS asociadas.

    Raises:
        404: Si la dependencia no existe
        400: Si tiene elementos asociados
    """
    with get_db_session() as session:
        try:
            if not get_dependencia(session, dependencia_id):
                raise HTTPException(status_code=404, detail=f"Dependencia {dependencia_id} no encontrada")
            delete_dependencia(session, dependencia_id)
            session.flush()
            return {"message": "Dependencia eliminada correctamente"}
        except HTTPException:
            raise
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except Exception as e:
            session.rollback()
            raise HTTPException(status_code=500, detail=f"Error interno: {str(e)}") from e
