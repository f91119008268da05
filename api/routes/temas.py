"""
Endpoints para temas de FAQs.

Los temas no son una tabla: se derivan del campo `tema` de las FAQs de cada
subdependencia.

- GET /api/v1/temas: Listar temas con cantidad de FAQs
- GET /api/v1/temas/nombres: Nombres de temas de una subdependencia
- PUT /api/v1/temas: Renombrar un tema
- DELETE /api/v1/temas: Quitar un tema (las FAQs quedan sin tema)
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from portal_core.db.database import get_db_session
from portal_core.db.temas import delete_tema, list_tema_names, list_temas, rename_tema

from ..dependencies import require_permission
from ..models.requests import TemaRenameRequest, TemaResponse

router = APIRouter(prefix="/api/v1/temas", tags=["temas"])


@router.get("", response_model=list[TemaResponse])
async def list_temas_endpoint(subdependencia_id: Optional[str] = None, query: Optional[str] = None):
    with get_db_session() as session:
        return [TemaResponse(**tema) for tema in list_temas(session, subdependencia_id, query)]


@router.get("/nombres", response_model=list[str])
async def list_tema_names_endpoint(subdependencia_id: str):
    with get_db_session() as session:
        return list_tema_names(session, subdependencia_id)


@router.put("", dependencies=[Depends(require_permission("faqs.write"))])
async def rename_tema_endpoint(request: TemaRenameRequest):
    """
    Renombra un tema en todas las FAQs de la subdependencia.

    Raises:
        404: Si el tema no existe en la subdependencia
        400: Si el nombre nuevo está vacío
    """
    with get_db_session() as session:
        try:
            if request.nombre_actual not in list_tema_names(session, request.subdependencia_id):
                raise HTTPException(status_code=404, detail=f"Tema '{request.nombre_actual}' no encontrado")
            updated = rename_tema(session, request.subdependencia_id, request.nombre_actual, request.nombre_nuevo)
            return {"message": "Tema renombrado correctamente", "faqs_actualizadas": updated}
        except HTTPException:
            raise
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except Exception as e:
            session.rollback()
            raise HTTPException(status_code=500, detail=f"Error interno: {str(e)}") from e


@router.delete("", dependencies=[Depends(require_permission("faqs.write"))])
async def delete_tema_endpoint(subdependencia_id: str, nombre: str):
    with get_db_session() as session:
        try:
            if nombre not in list_tema_names(session, subdependencia_id):
                raise HTTPException(status_code=404, detail=f"Tema '{nombre}' no encontrado")
            updated = delete_tema(session, subdependencia_id, nombre)
            return {"message": "Tema eliminado correctamente", "faqs_actualizadas": updated}
        except HTTPException:
            raise
        except Exception as e:
            session.rollback()
            raise HTTPException(status_code=500, detail=f"Error interno: {str(e)}") from e
