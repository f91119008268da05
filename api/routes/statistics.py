"""
Endpoint de estadísticas generales del portal.

- GET /api/v1/statistics: Conteos de dependencias, servicios y FAQs
"""

from fastapi import APIRouter

from portal_core.db.database import get_db_session
from portal_core.statistics import get_portal_statistics

router = APIRouter(prefix="/api/v1/statistics", tags=["statistics"])


@router.get("")
async def get_statistics_endpoint():
    with get_db_session() as session:
        return get_portal_statistics(session)
