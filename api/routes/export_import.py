"""
Endpoints de exportación e importación del catálogo.

- GET /api/v1/export/servicios?format=csv|json: Exportar trámites y OPAs
- GET /api/v1/export/faqs?format=csv|json: Exportar FAQs
- POST /api/v1/import/servicios: Importar trámites y OPAs
- POST /api/v1/import/faqs: Importar FAQs

La importación recibe el contenido del archivo como texto (ver `ImportRequest`)
y devuelve el resumen con los errores por fila. Un registro inválido no
aborta el resto.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from portal_core.db.database import get_db_session
from portal_core.export import export_faqs, export_services, import_faqs, import_services, parse_faqs, parse_services

from ..dependencies import CurrentUser, require_permission
from ..models.requests import ExportFormat, ImportRequest, ImportResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["export-import"])

_MEDIA_TYPES = {
    ExportFormat.CSV: "text/csv; charset=utf-8",
    ExportFormat.JSON: "application/json",
}


def _file_response(content: str, fmt: ExportFormat, prefix: str) -> Response:
    filename = f"{prefix}_{datetime.utcnow().strftime('%Y%m%d')}.{fmt.value}"
    return Response(
        content=content,
        media_type=_MEDIA_TYPES[fmt],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/export/servicios")
async def export_services_endpoint(
    format: ExportFormat = Query(ExportFormat.CSV, description="csv | json"),
    service_type: str = Query("both", description="tramite | opa | both"),
    dependencia_id: Optional[str] = None,
    activo: Optional[bool] = None,
):
    """Exporta trámites y OPAs como archivo descargable."""
    with get_db_session() as session:
        content = export_services(
            session,
            format.value,
            service_type=service_type,
            dependencia_id=dependencia_id,
            activo=activo,
        )
    return _file_response(content, format, "servicios")


@router.get("/export/faqs")
async def export_faqs_endpoint(
    format: ExportFormat = Query(ExportFormat.CSV, description="csv | json"),
    dependencia_id: Optional[str] = None,
    activo: Optional[bool] = None,
):
    with get_db_session() as session:
        content = export_faqs(session, format.value, dependencia_id=dependencia_id, activo=activo)
    return _file_response(content, format, "faqs")


@router.post("/import/servicios", response_model=ImportResponse)
async def import_services_endpoint(
    request: ImportRequest,
    user: CurrentUser = Depends(require_permission("import.run")),
):
    """
    Importa trámites y OPAs.

    Raises:
        400: Si el contenido no se puede parsear (ej: JSON inválido)
    """
    try:
        records = parse_services(request.content, request.format.value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    with get_db_session() as session:
        result = import_services(session, records, request.conflict_strategy.value)
    logger.info(f"Importación de servicios por {user.email or user.id}: {result.message}")
    return ImportResponse(**result.to_dict())


@router.post("/import/faqs", response_model=ImportResponse)
async def import_faqs_endpoint(
    request: ImportRequest,
    user: CurrentUser = Depends(require_permission("import.run")),
):
    try:
        records = parse_faqs(request.content, request.format.value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    with get_db_session() as session:
        result = import_faqs(session, records, request.conflict_strategy.value)
    logger.info(f"Importación de FAQs por {user.email or user.id}: {result.message}")
    return ImportResponse(**result.to_dict())
