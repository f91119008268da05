"""
portal_core.chatbot.knowledge
=============================

Base de conocimiento del asistente virtual.

Flujo
-----
1. `build_knowledge_items()` arma un texto por cada trámite, OPA, FAQ y
   dependencia activos, más información general del municipio.
2. `index_knowledge()` genera el embedding de cada item y lo guarda en
   `ContentEmbedding` (upsert por tipo + id). Items cuyo contenido no cambió
   no se vuelven a embeber; entradas de contenido que ya no está activo se
   eliminan.
3. `hybrid_search()` combina similitud coseno (numpy) con coincidencia de
   texto sin tildes sobre título y contenido.

Los embeddings viven como listas JSON en la base; la similitud se calcula en
memoria, suficiente para el tamaño del catálogo municipal.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

import numpy as np
from sqlalchemy.orm import Session, joinedload, selectinload

from ..config import get_settings
from ..db.models import FAQ, OPA, ContentEmbedding, Dependencia, Subdependencia, Tramite
from ..llm_client import generate_embedding
from ..text_normalization import normalize_for_search

logger = logging.getLogger(__name__)

NO_DISPONIBLE = "No disponible"
NO_ESPECIFICADO = "No especificado"

# Palabras que no aportan a la coincidencia por texto
_STOPWORDS = {
    "como", "cual", "cuales", "cuando", "donde", "para", "porque", "quiero",
    "puedo", "necesito", "sobre", "tiene", "tengo", "hacer", "saber", "esta",
    "este", "estos", "esas", "esos", "unos", "unas", "del", "las", "los",
    "que", "con", "por", "una", "hay", "cuanto", "cuesta",
}


@dataclass
class KnowledgeItem:
    content_id: str
    content_type: str
    title: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SimilarContent:
    id: str
    content_id: str
    content_type: str
    title: str
    content: str
    similarity: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "content_id": self.content_id,
            "content_type": self.content_type,
            "title": self.title,
            "content": self.content,
            "similarity": round(self.similarity, 4),
            "metadata": self.metadata,
        }


# ============================================================
# Construcción de items
# ============================================================

def _lines(*pairs: tuple[str, Any]) -> str:
    return "\n".join(f"{label}: {value}" for label, value in pairs)


def _join(values: List[str] | None, empty: str = "No especificados") -> str:
    return ", ".join(values) if values else empty


def general_information() -> List[KnowledgeItem]:
    """Información institucional fija (contacto, horarios, ubicación)."""
    municipio = get_settings().municipio_nombre
    return [
        KnowledgeItem(
            content_id="general-contact",
            content_type="general",
            title="Información de Contacto del Municipio",
            content=(
                f"Municipio de {municipio}, Cundinamarca\n"
                "Teléfono: (601) 123-4567\n"
                f"Email: info@{normalize_for_search(municipio).replace(' ', '')}.gov.co\n"
                f"Dirección: Carrera 11 # 17-25, {municipio}, Cundinamarca\n"
                "Horario de atención: Lunes a Viernes de 8:00 AM a 5:00 PM"
            ),
            metadata={"category": "contact"},
        ),
        KnowledgeItem(
            content_id="general-hours",
            content_type="general",
            title="Horarios de Atención",
            content=(
                "Horarios de atención al público:\n"
                "- Lunes a Viernes: 8:00 AM a 5:00 PM\n"
                "- Sábados, domingos y festivos: Cerrado\n"
                "Atención virtual disponible 24/7 a través del asistente virtual\n"
                "Para emergencias, contactar la línea de emergencias 123"
            ),
            metadata={"category": "hours"},
        ),
        KnowledgeItem(
            content_id="general-location",
            content_type="general",
            title="Ubicación y Cómo Llegar",
            content=(
                f"Alcaldía Municipal de {municipio}\n"
                f"Dirección: Carrera 11 # 17-25, {municipio}, Cundinamarca\n"
                "Estacionamiento disponible en las instalaciones"
            ),
            metadata={"category": "location"},
        ),
    ]


def build_knowledge_items(session: Session) -> List[KnowledgeItem]:
    """Arma los items de conocimiento a partir del catálogo activo."""
    items: List[KnowledgeItem] = []
    org_options = joinedload(Tramite.subdependencia).joinedload(Subdependencia.dependencia)

    for t in session.query(Tramite).options(org_options).filter(Tramite.activo.is_(True)):
        sub = t.subdependencia
        dep = sub.dependencia if sub else None
        items.append(KnowledgeItem(
            content_id=t.id,
            content_type="tramite",
            title=f"Trámite: {t.nombre}",
            content=_lines(
                ("Nombre", t.nombre),
                ("Código", t.codigo_unico),
                ("Descripción", t.descripcion or t.formulario or NO_DISPONIBLE),
                ("Requisitos", _join(t.requisitos)),
                ("Pasos", _join(t.instructivo)),
                ("Modalidad", t.modalidad),
                ("Tiempo de respuesta", t.tiempo_respuesta or NO_ESPECIFICADO),
                ("Requiere pago", "Sí" if t.tiene_pago else "No"),
                ("Dependencia", dep.nombre if dep else "No especificada"),
                ("Subdependencia", sub.nombre if sub else "No especificada"),
                ("Enlace SUIT", t.visualizacion_suit or NO_DISPONIBLE),
                ("Enlace GOV.CO", t.visualizacion_gov or NO_DISPONIBLE),
            ),
            metadata={
                "codigo": t.codigo_unico,
                "tiene_pago": t.tiene_pago,
                "tiempo_respuesta": t.tiempo_respuesta,
                "dependencia": dep.nombre if dep else None,
                "subdependencia": sub.nombre if sub else None,
            },
        ))

    opa_options = joinedload(OPA.subdependencia).joinedload(Subdependencia.dependencia)
    for o in session.query(OPA).options(opa_options).filter(OPA.activo.is_(True)):
        sub = o.subdependencia
        dep = sub.dependencia if sub else None
        items.append(KnowledgeItem(
            content_id=o.id,
            content_type="opa",
            title=f"OPA: {o.nombre}",
            content=_lines(
                ("Nombre", o.nombre),
                ("Código", o.codigo_opa),
                ("Descripción", o.descripcion or o.formulario or NO_DISPONIBLE),
                ("Requisitos", _join(o.requisitos)),
                ("Tiempo de respuesta", o.tiempo_respuesta or NO_ESPECIFICADO),
                ("Requiere pago", "Sí" if o.tiene_pago else "No"),
                ("Dependencia", dep.nombre if dep else "No especificada"),
                ("Subdependencia", sub.nombre if sub else "No especificada"),
            ),
            metadata={
                "codigo": o.codigo_opa,
                "tiene_pago": o.tiene_pago,
                "tiempo_respuesta": o.tiempo_respuesta,
                "dependencia": dep.nombre if dep else None,
                "subdependencia": sub.nombre if sub else None,
            },
        ))

    for f in session.query(FAQ).options(joinedload(FAQ.dependencia)).filter(FAQ.activo.is_(True)):
        items.append(KnowledgeItem(
            content_id=f.id,
            content_type="faq",
            title=f"FAQ: {f.pregunta}",
            content=_lines(
                ("Pregunta", f.pregunta),
                ("Respuesta", f.respuesta),
                ("Tema", f.tema or "General"),
                ("Dependencia", f.dependencia.nombre if f.dependencia else "General"),
            ),
            metadata={"dependencia": f.dependencia.nombre if f.dependencia else None, "tema": f.tema},
        ))

    for d in session.query(Dependencia).options(selectinload(Dependencia.subdependencias)).filter(
        Dependencia.activo.is_(True)
    ):
        subs = [s.nombre for s in d.subdependencias if s.activo]
        items.append(KnowledgeItem(
            content_id=d.id,
            content_type="dependencia",
            title=f"Dependencia: {d.nombre}",
            content=_lines(
                ("Nombre", d.nombre),
                ("Código", d.codigo),
                ("Descripción", d.descripcion or NO_DISPONIBLE),
                ("Subdependencias", _join(subs, empty="Ninguna")),
            ),
            metadata={"codigo": d.codigo, "subdependencias_count": len(subs)},
        ))

    items.extend(general_information())
    return items


# ============================================================
# Indexación
# ============================================================

def upsert_content_embedding(
    session: Session,
    content_type: str,
    content_id: str,
    title: str,
    content: str,
    metadata: Dict[str, Any] | None = None,
    force: bool = False,
) -> ContentEmbedding:
    """
    Crea o actualiza la entrada de conocimiento de un contenido.

    El embedding se regenera solo si cambió el título/contenido (o `force`).

    Raises:
        RuntimeError: Si falla la generación del embedding
    """
    entry = session.query(ContentEmbedding).filter_by(content_type=content_type, content_id=content_id).first()
    unchanged = (
        entry is not None
        and entry.title == title
        and entry.content == content
        and len(entry.embedding or []) == get_settings().embedding_dimensions
    )

    if entry is None:
        entry = ContentEmbedding(content_type=content_type, content_id=content_id)
        session.add(entry)

    entry.title = title
    entry.content = content
    entry.metadata_json = json.dumps(metadata or {}, ensure_ascii=False)
    if force or not unchanged:
        result = generate_embedding(f"{title} {content}")
        entry.embedding = result.embedding
        entry.tokens = result.tokens
    return entry


def index_knowledge(session: Session, force: bool = False) -> Dict[str, int]:
    """
    (Re)construye la base de conocimiento.

    Returns:
        Conteos por tipo indexado, más "removed" (entradas obsoletas
        eliminadas) y "errors" (items que no pudieron embeberse)
    """
    items = build_knowledge_items(session)
    counts: Dict[str, int] = {"tramite": 0, "opa": 0, "faq": 0, "dependencia": 0, "general": 0, "removed": 0, "errors": 0}

    current_keys = set()
    for item in items:
        current_keys.add((item.content_type, item.content_id))
        try:
            upsert_content_embedding(
                session,
                item.content_type,
                item.content_id,
                item.title,
                item.content,
                item.metadata,
                force=force,
            )
            counts[item.content_type] += 1
        except RuntimeError:
            logger.exception(f"Error indexando '{item.title}'")
            counts["errors"] += 1

    for entry in session.query(ContentEmbedding).all():
        if (entry.content_type, entry.content_id) not in current_keys:
            session.delete(entry)
            counts["removed"] += 1

    session.flush()
    logger.info(f"Base de conocimiento indexada: {counts}")
    return counts


# ============================================================
# Búsqueda híbrida
# ============================================================

def cosine_similarity(matrix: np.ndarray, vector: np.ndarray) -> np.ndarray:
    """Similitud coseno de cada fila de `matrix` contra `vector`."""
    vector_norm = np.linalg.norm(vector)
    row_norms = np.linalg.norm(matrix, axis=1)
    denominator = row_norms * vector_norm
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = np.where(denominator > 0, matrix @ vector / denominator, 0.0)
    return scores


def _significant_terms(normalized_query: str) -> list[str]:
    return [t for t in normalized_query.split() if len(t) >= 4 and t not in _STOPWORDS]


def keyword_rank(query: str, title: str, content: str) -> int:
    """
    Rango de coincidencia por texto: 1 = título, 2 = contenido, 0 = sin coincidencia.

    Coincide si la consulta completa aparece, o si aparecen todas sus palabras
    significativas (4+ letras, sin muletillas).
    """
    normalized_query = normalize_for_search(query)
    if not normalized_query:
        return 0
    terms = _significant_terms(normalized_query)

    for rank, text in ((1, title), (2, content)):
        normalized = normalize_for_search(text)
        if normalized_query in normalized:
            return rank
        if terms and all(term in normalized for term in terms):
            return rank
    return 0


def hybrid_search(
    session: Session,
    query: str,
    threshold: float | None = None,
    limit: int | None = None,
) -> List[SimilarContent]:
    """
    Busca contenido relevante para una consulta.

    Incluye entradas con similitud > `threshold` o con coincidencia por texto
    en título/contenido. Orden: similitud desc, luego título antes que contenido.

    Si falla el embedding de la consulta se usa solo la coincidencia por texto.
    """
    settings = get_settings()
    threshold = settings.chat_similarity_threshold if threshold is None else threshold
    limit = settings.chat_match_count if limit is None else limit

    entries = session.query(ContentEmbedding).all()
    if not entries or not (query or "").strip():
        return []

    try:
        query_vector = np.asarray(generate_embedding(query).embedding, dtype=np.float64)
    except RuntimeError:
        logger.warning("No se pudo embeber la consulta; se usa solo coincidencia por texto")
        query_vector = None

    similarities = np.zeros(len(entries))
    if query_vector is not None:
        valid = [i for i, e in enumerate(entries) if len(e.embedding or []) == len(query_vector)]
        if valid:
            matrix = np.asarray([entries[i].embedding for i in valid], dtype=np.float64)
            similarities[valid] = cosine_similarity(matrix, query_vector)

    candidates = []
    for entry, similarity in zip(entries, similarities):
        rank = keyword_rank(query, entry.title, entry.content)
        if similarity > threshold or rank:
            candidates.append((float(similarity), rank or 3, entry))

    candidates.sort(key=lambda c: (-c[0], c[1]))
    return [
        SimilarContent(
            id=entry.id,
            content_id=entry.content_id,
            content_type=entry.content_type,
            title=entry.title,
            content=entry.content,
            similarity=similarity,
            metadata=json.loads(entry.metadata_json or "{}"),
        )
        for similarity, _, entry in candidates[:limit]
    ]
