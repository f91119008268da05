"""
Endpoints para gestionar preguntas frecuentes.

Este endpoint maneja:
- GET /api/v1/faqs: Listar FAQs (búsqueda y filtros)
- GET /api/v1/faqs/hierarchy: FAQs agrupadas dependencia -> subdependencia -> tema
- GET /api/v1/faqs/keywords: Palabras clave usadas por FAQs activas
- GET /api/v1/faqs/by-tema: FAQs de un tema de una subdependencia
- GET /api/v1/faqs/{faq_id}: Obtener una FAQ
- POST /api/v1/faqs: Crear una FAQ
- PUT /api/v1/faqs/{faq_id}: Actualizar una FAQ
- DELETE /api/v1/faqs/{faq_id}: Eliminar una FAQ
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import IntegrityError

from portal_core.db.database import get_db_session
from portal_core.db.faqs import (
    create_faq,
    delete_faq,
    get_faq,
    get_faq_hierarchy,
    list_faq_keywords,
    list_faqs,
    list_faqs_by_tema,
    update_faq,
)
from portal_core.db.models import FAQ

from ..dependencies import require_permission
from ..models.requests import FAQCreateRequest, FAQResponse, FAQUpdateRequest, PageResponse

router = APIRouter(prefix="/api/v1/faqs", tags=["faqs"])


def _to_response(faq: FAQ) -> FAQResponse:
    return FAQResponse(
        id=faq.id,
        pregunta=faq.pregunta,
        respuesta=faq.respuesta,
        palabras_clave=faq.palabras_clave or [],
        dependencia_id=faq.dependencia_id,
        dependencia_nombre=faq.dependencia.nombre if faq.dependencia else None,
        subdependencia_id=faq.subdependencia_id,
        subdependencia_nombre=faq.subdependencia.nombre if faq.subdependencia else None,
        tema=faq.tema,
        orden=faq.orden,
        activo=faq.activo,
        created_at=faq.created_at.isoformat(),
        updated_at=faq.updated_at.isoformat(),
    )


@router.get("", response_model=PageResponse[FAQResponse])
async def list_faqs_endpoint(
    query: Optional[str] = None,
    dependencia_id: Optional[str] = None,
    subdependencia_id: Optional[str] = None,
    tema: Optional[str] = None,
    activo: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=200),
):
    """Lista FAQs (más recientes primero). `query` busca en pregunta, respuesta, tema y palabras clave."""
    with get_db_session() as session:
        result = list_faqs(
            session,
            query=query,
            dependencia_id=dependencia_id,
            subdependencia_id=subdependencia_id,
            tema=tema,
            activo=activo,
            page=page,
            limit=limit,
        )
        return PageResponse[FAQResponse](
            items=[_to_response(f) for f in result.items],
            total=result.total,
            page=result.page,
            limit=result.limit,
            total_pages=result.total_pages,
        )


@router.get("/hierarchy")
async def get_faq_hierarchy_endpoint():
    """
    FAQs activas agrupadas por dependencia, subdependencia y tema.

    FAQs sin tema aparecen bajo "Sin categoría".
    """
    with get_db_session() as session:
        return [
            {
                "dependencia": {"id": node["dependencia"].id, "nombre": node["dependencia"].nombre},
                "subdependencias": [
                    {
                        "subdependencia": (
                            {"id": sub["subdependencia"].id, "nombre": sub["subdependencia"].nombre}
                            if sub["subdependencia"] else None
                        ),
                        "temas": [
                            {"tema": t["tema"], "faqs": [_to_response(f) for f in t["faqs"]]}
                            for t in sub["temas"]
                        ],
                    }
                    for sub in node["subdependencias"]
                ],
            }
            for node in get_faq_hierarchy(session)
        ]


@router.get("/keywords", response_model=list[str])
async def list_faq_keywords_endpoint():
    with get_db_session() as session:
        return list_faq_keywords(session)


@router.get("/by-tema", response_model=list[FAQResponse])
async def list_faqs_by_tema_endpoint(subdependencia_id: str, tema: str):
    with get_db_session() as session:
        return [_to_response(f) for f in list_faqs_by_tema(session, subdependencia_id, tema)]


@router.get("/{faq_id}", response_model=FAQResponse)
async def get_faq_endpoint(faq_id: str):
    with get_db_session() as session:
        faq = get_faq(session, faq_id)
        if not faq:
            raise HTTPException(status_code=404, detail=f"FAQ {faq_id} no encontrada")
        return _to_response(faq)


@router.post(
    "",
    response_model=FAQResponse,
    status_code=201,
    dependencies=[Depends(require_permission("faqs.write"))],
)
async def create_faq_endpoint(request: FAQCreateRequest):
    """
    Crea una FAQ.

    Raises:
        400: Si faltan pregunta/respuesta/dependencia o la subdependencia no pertenece a la dependencia
    """
    with get_db_session() as session:
        try:
            faq = create_faq(session, request.model_dump())
            session.refresh(faq)
            return _to_response(faq)
        except HTTPException:
            raise
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except IntegrityError as e:
            session.rollback()
            raise HTTPException(status_code=400, detail=f"Error al crear FAQ: {str(e)}") from e
        except Exception as e:
            session.rollback()
            raise HTTPException(status_code=500, detail=f"Error interno: {str(e)}") from e


@router.put(
    "/{faq_id}",
    response_model=FAQResponse,
    dependencies=[Depends(require_permission("faqs.write"))],
)
async def update_faq_endpoint(faq_id: str, request: FAQUpdateRequest):
    with get_db_session() as session:
        try:
            if not get_faq(session, faq_id):
                raise HTTPException(status_code=404, detail=f"FAQ {faq_id} no encontrada")
            faq = update_faq(session, faq_id, request.model_dump(exclude_unset=True))
            session.flush()
            session.refresh(faq)
            return _to_response(faq)
        except HTTPException:
            raise
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except Exception as e:
            session.rollback()
            raise HTTPException(status_code=500, detail=f"Error interno: {str(e)}") from e


@router.delete("/{faq_id}", dependencies=[Depends(require_permission("faqs.write"))])
async def delete_faq_endpoint(faq_id: str):
    with get_db_session() as session:
        try:
            if not get_faq(session, faq_id):
                raise HTTPException(status_code=404, detail=f"FAQ {faq_id} no encontrada")
            delete_faq(session, faq_id)
            session.flush()
            return {"message": "FAQ eliminada correctamente"}
        except HTTPException:
            raise
        except Exception as e:
            session.rollback()
            raise HTTPException(status_code=500, detail=f"Error interno: {str(e)}") from e
