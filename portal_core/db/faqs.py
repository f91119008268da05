"""
Preguntas frecuentes (FAQs).

Una FAQ pertenece a una dependencia y, opcionalmente, a una subdependencia
de esa misma dependencia. El campo `tema` agrupa FAQs dentro de una
subdependencia (ver `portal_core.db.temas`).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from ..text_normalization import matches_all_terms, normalize_text
from .helpers import Page, apply_updates, clean_text_list, get_dependencia, get_subdependencia, paginate
from .models import FAQ, Dependencia, Subdependencia

SIN_CATEGORIA = "Sin categoría"

FAQ_FIELDS = (
    "pregunta", "respuesta", "palabras_clave", "dependencia_id",
    "subdependencia_id", "tema", "orden", "activo",
)


def _resolve_org(session: Session, faq: FAQ) -> None:
    """Completa/valida la relación dependencia-subdependencia de la FAQ."""
    if faq.subdependencia_id:
        subdependencia = get_subdependencia(session, faq.subdependencia_id)
        if not subdependencia:
            raise ValueError(f"Subdependencia {faq.subdependencia_id} no encontrada")
        if not faq.dependencia_id:
            faq.dependencia_id = subdependencia.dependencia_id
        elif faq.dependencia_id != subdependencia.dependencia_id:
            raise ValueError("La subdependencia no pertenece a la dependencia indicada")

    if not faq.dependencia_id:
        raise ValueError("La dependencia es requerida")
    if not get_dependencia(session, faq.dependencia_id):
        raise ValueError(f"Dependencia {faq.dependencia_id} no encontrada")


def _validate_faq(faq: FAQ) -> None:
    if not (faq.pregunta or "").strip():
        raise ValueError("La pregunta es requerida")
    if not (faq.respuesta or "").strip():
        raise ValueError("La respuesta es requerida")
    faq.pregunta = faq.pregunta.strip()
    faq.respuesta = faq.respuesta.strip()
    faq.palabras_clave = clean_text_list(faq.palabras_clave)
    if faq.tema is not None:
        faq.tema = faq.tema.strip() or None


def list_faqs(
    session: Session,
    query: str | None = None,
    dependencia_id: str | None = None,
    subdependencia_id: str | None = None,
    tema: str | None = None,
    activo: bool | None = None,
    page: int = 1,
    limit: int = 10,
) -> Page:
    """
    Lista FAQs, más recientes primero.

    La búsqueda cubre pregunta, respuesta, tema y palabras clave.
    """
    q = session.query(FAQ)
    if dependencia_id:
        q = q.filter(FAQ.dependencia_id == dependencia_id)
    if subdependencia_id:
        q = q.filter(FAQ.subdependencia_id == subdependencia_id)
    if tema:
        q = q.filter(FAQ.tema == tema)
    if activo is not None:
        q = q.filter(FAQ.activo == activo)

    faqs = [
        f for f in q.order_by(FAQ.created_at.desc()).all()
        if matches_all_terms(query, [f.pregunta, f.respuesta, f.tema, *(f.palabras_clave or [])])
    ]
    return paginate(faqs, page, limit)


def get_faq(session: Session, faq_id: str) -> FAQ | None:
    return session.query(FAQ).filter_by(id=faq_id).first()


def create_faq(session: Session, data: Dict[str, Any]) -> FAQ:
    """
    Crea una FAQ.

    Si solo se indica `subdependencia_id`, la dependencia se toma de ella.

    Raises:
        ValueError: Si faltan pregunta/respuesta/dependencia o la jerarquía es inconsistente
    """
    faq = FAQ(activo=True, orden=0, palabras_clave=[])
    apply_updates(faq, {k: v for k, v in data.items() if v is not None}, FAQ_FIELDS)
    _validate_faq(faq)
    _resolve_org(session, faq)

    session.add(faq)
    session.flush()
    return faq


def update_faq(session: Session, faq_id: str, data: Dict[str, Any]) -> FAQ:
    """
    Actualiza parcialmente una FAQ.

    Raises:
        ValueError: Si no existe o el resultado es inválido
    """
    faq = get_faq(session, faq_id)
    if not faq:
        raise ValueError(f"FAQ {faq_id} no encontrada")

    apply_updates(faq, data, FAQ_FIELDS)
    _validate_faq(faq)
    _resolve_org(session, faq)
    faq.updated_at = datetime.utcnow()
    return faq


def delete_faq(session: Session, faq_id: str) -> bool:
    faq = get_faq(session, faq_id)
    if not faq:
        raise ValueError(f"FAQ {faq_id} no encontrada")
    session.delete(faq)
    return True


def list_faq_keywords(session: Session) -> list[str]:
    """Palabras clave únicas (de FAQs activas), ordenadas alfabéticamente."""
    keywords: set[str] = set()
    for (palabras,) in session.query(FAQ.palabras_clave).filter(FAQ.activo.is_(True)):
        keywords.update(clean_text_list(palabras))
    return sorted(keywords, key=normalize_text)


def list_faqs_by_tema(session: Session, subdependencia_id: str, tema: str) -> list[FAQ]:
    """FAQs activas de un tema, por `orden` y luego pregunta."""
    return (
        session.query(FAQ)
        .filter(
            FAQ.subdependencia_id == subdependencia_id,
            FAQ.tema == tema,
            FAQ.activo.is_(True),
        )
        .order_by(FAQ.orden, FAQ.pregunta)
        .all()
    )


def get_faq_hierarchy(session: Session) -> List[Dict[str, Any]]:
    """
    Agrupa las FAQs activas en dependencia -> subdependencia -> tema.

    Returns:
        Lista de dicts:
        `{"dependencia": Dependencia, "subdependencias": [
            {"subdependencia": Subdependencia | None, "temas": [
                {"tema": str, "faqs": [FAQ, ...]}]}]}`

        Todos los niveles se ordenan por nombre; las FAQs por `orden`.
        FAQs sin tema quedan bajo "Sin categoría".
    """
    rows = (
        session.query(FAQ, Dependencia, Subdependencia)
        .join(Dependencia, FAQ.dependencia_id == Dependencia.id)
        .outerjoin(Subdependencia, FAQ.subdependencia_id == Subdependencia.id)
        .filter(FAQ.activo.is_(True))
        .all()
    )

    tree: Dict[str, Dict[str, Any]] = {}
    for faq, dependencia, subdependencia in rows:
        dep_node = tree.setdefault(dependencia.id, {"dependencia": dependencia, "subdependencias": {}})
        sub_key = subdependencia.id if subdependencia else ""
        sub_node = dep_node["subdependencias"].setdefault(
            sub_key, {"subdependencia": subdependencia, "temas": {}}
        )
        sub_node["temas"].setdefault(faq.tema or SIN_CATEGORIA, []).append(faq)

    result = []
    for dep_node in sorted(tree.values(), key=lambda n: normalize_text(n["dependencia"].nombre)):
        subdependencias = []
        for sub_node in sorted(
            dep_node["subdependencias"].values(),
            key=lambda n: normalize_text(n["subdependencia"].nombre if n["subdependencia"] else ""),
        ):
            temas = [
                {"tema": tema, "faqs": sorted(faqs, key=lambda f: (f.orden, normalize_text(f.pregunta)))}
                for tema, faqs in sorted(sub_node["temas"].items(), key=lambda kv: normalize_text(kv[0]))
            ]
            subdependencias.append({"subdependencia": sub_node["subdependencia"], "temas": temas})
        result.append({"dependencia": dep_node["dependencia"], "subdependencias": subdependencias})
    return result
