"""
Endpoints de gestión unificada de servicios (trámites + OPAs).

Este endpoint maneja:
- GET /api/v1/servicios: Listado combinado con métricas
- GET /api/v1/servicios/metrics: Sólo métricas
- POST /api/v1/servicios: Crear un trámite u OPA
- GET /api/v1/servicios/{tipo}/{service_id}: Obtener un servicio
- PUT /api/v1/servicios/{tipo}/{service_id}: Actualizar un servicio
- DELETE /api/v1/servicios/{tipo}/{service_id}: Eliminar un servicio
- POST /api/v1/servicios/{tipo}/{service_id}/toggle: Activar/desactivar
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import IntegrityError

from portal_core.db.database import get_db_session
from portal_core.unified_services import (
    ServiceFilters,
    calculate_metrics,
    create_service,
    delete_service,
    get_service,
    list_services,
    toggle_service_active,
    update_service,
)

from ..dependencies import require_permission
from ..models.requests import ServiceCreateRequest, ServiceType, ServiceUpdateRequest

router = APIRouter(prefix="/api/v1/servicios", tags=["servicios"])


def _not_found(tipo: ServiceType, service_id: str) -> HTTPException:
    label = "Trámite" if tipo == ServiceType.TRAMITE else "OPA"
    return HTTPException(status_code=404, detail=f"{label} {service_id} no encontrado")


@router.get("")
async def list_services_endpoint(
    service_type: str = Query("both", description="tramite | opa | both"),
    query: str = "",
    dependencia_id: str = "",
    subdependencia_id: str = "",
    tipo_pago: str = Query("both", description="gratuito | con_pago | both"),
    activo: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
):
    """Trámites y OPAs en una sola lista ordenada por nombre, más métricas globales."""
    with get_db_session() as session:
        try:
            result = list_services(
                session,
                ServiceFilters(
                    service_type=service_type,
                    query=query,
                    dependencia_id=dependencia_id,
                    subdependencia_id=subdependencia_id,
                    tipo_pago=tipo_pago,
                    activo=activo,
                    page=page,
                    limit=limit,
                ),
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        page_result = result["page"]
        return {
            "items": [item.to_dict() for item in page_result.items],
            "total": page_result.total,
            "page": page_result.page,
            "limit": page_result.limit,
            "total_pages": page_result.total_pages,
            "metrics": result["metrics"],
        }


@router.get("/metrics")
async def get_metrics_endpoint():
    with get_db_session() as session:
        return calculate_metrics(session)


@router.post("", status_code=201, dependencies=[Depends(require_permission("catalog.write"))])
async def create_service_endpoint(request: ServiceCreateRequest):
    """
    Crea un trámite u OPA según `tipo`.

    Raises:
        400: Si el servicio no cumple las reglas de su tipo
    """
    with get_db_session() as session:
        try:
            item = create_service(session, request.model_dump(mode="json"))
            return item.to_dict()
        except HTTPException:
            raise
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except IntegrityError as e:
            session.rollback()
            raise HTTPException(status_code=400, detail=f"Error al crear servicio: {str(e)}") from e
        except Exception as e:
            session.rollback()
            raise HTTPException(status_code=500, detail=f"Error interno: {str(e)}") from e


@router.get("/{tipo}/{service_id}")
async def get_service_endpoint(tipo: ServiceType, service_id: str):
    with get_db_session() as session:
        item = get_service(session, tipo.value, service_id)
        if not item:
            raise _not_found(tipo, service_id)
        return item.to_dict()


@router.put("/{tipo}/{service_id}", dependencies=[Depends(require_permission("catalog.write"))])
async def update_service_endpoint(tipo: ServiceType, service_id: str, request: ServiceUpdateRequest):
    with get_db_session() as session:
        try:
            if not get_service(session, tipo.value, service_id):
                raise _not_found(tipo, service_id)
            item = update_service(session, tipo.value, service_id, request.model_dump(mode="json", exclude_unset=True))
            return item.to_dict()
        except HTTPException:
            raise
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except IntegrityError as e:
            session.rollback()
            raise HTTPException(status_code=400, detail=f"Error al actualizar servicio: {str(e)}") from e
        except Exception as e:
            session.rollback()
            raise HTTPException(status_code=500, detail=f"Error interno: {str(e)}") from e


@router.delete("/{tipo}/{service_id}", dependencies=[Depends(require_permission("catalog.write"))])
async def delete_service_endpoint(tipo: ServiceType, service_id: str):
    with get_db_session() as session:
        try:
            if not get_service(session, tipo.value, service_id):
                raise _not_found(tipo, service_id)
            delete_service(session, tipo.value, service_id)
            session.flush()
            return {"message": "Servicio eliminado correctamente"}
        except HTTPException:
            raise
        except Exception as e:
            session.rollback()
            raise HTTPException(status_code=500, detail=f"Error interno: {str(e)}") from e


@router.post("/{tipo}/{service_id}/toggle", dependencies=[Depends(require_permission("catalog.write"))])
async def toggle_service_endpoint(tipo: ServiceType, service_id: str):
    """
    Activa/desactiva un servicio.

    Raises:
        400: Si el servicio no cumple las reglas para quedar activo
    """
    with get_db_session() as session:
        try:
            if not get_service(session, tipo.value, service_id):
                raise _not_found(tipo, service_id)
            return toggle_service_active(session, tipo.value, service_id).to_dict()
        except HTTPException:
            raise
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except Exception as e:
            session.rollback()
            raise HTTPException(status_code=500, detail=f"Error interno: {str(e)}") from e
