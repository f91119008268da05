"""Estadísticas generales del portal (portada y panel de administración)."""

from __future__ import annotations

from typing import Dict

from sqlalchemy.orm import Session

from .db.models import FAQ, OPA, Dependencia, Subdependencia, Tramite


def get_portal_statistics(session: Session) -> Dict[str, int]:
    """
    Conteos del catálogo.

    `total_results` es la cantidad de elementos activos que puede devolver el
    buscador (trámites + OPAs + FAQs activos).
    """
    tramites_activos = session.query(Tramite).filter(Tramite.activo.is_(True)).count()
    opas_activas = session.query(OPA).filter(OPA.activo.is_(True)).count()
    faqs_activas = session.query(FAQ).filter(FAQ.activo.is_(True)).count()
    return {
        "dependencias": session.query(Dependencia).count(),
        "subdependencias": session.query(Subdependencia).count(),
        "tramites": session.query(Tramite).count(),
        "tramites_activos": tramites_activos,
        "opas": session.query(OPA).count(),
        "opas_activas": opas_activas,
        "faqs": session.query(FAQ).count(),
        "faqs_activas": faqs_activas,
        "total_results": tramites_activos + opas_activas + faqs_activas,
    }
