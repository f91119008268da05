"""
Tests de la base de conocimiento del asistente (modo simulado, sin OpenAI).
"""

import numpy as np

from portal_core.chatbot.knowledge import (
    build_knowledge_items,
    cosine_similarity,
    hybrid_search,
    index_knowledge,
    keyword_rank,
)
from portal_core.config import get_settings
from portal_core.db.models import ContentEmbedding
from portal_core.db.services import create_tramite, update_tramite
from portal_core.llm_client import calculate_confidence, is_simulated_mode, simulated_embedding

from conftest import unique


def _entry(session, content_type, content_id):
    return session.query(ContentEmbedding).filter_by(content_type=content_type, content_id=content_id).first()


def test_modo_simulado_sin_api_key():
    assert is_simulated_mode()


def test_simulated_embedding_determinista_y_normalizado():
    a = simulated_embedding("Licencia de construcción", 64)
    b = simulated_embedding("licencia de CONSTRUCCION", 64)
    assert a == b
    assert np.isclose(np.linalg.norm(a), 1.0)
    assert simulated_embedding("", 64) == [0.0] * 64


def test_cosine_similarity():
    matrix = np.array([[1.0, 0.0], [0.0, 1.0], [0.0, 0.0]])
    scores = cosine_similarity(matrix, np.array([1.0, 0.0]))
    assert np.allclose(scores, [1.0, 0.0, 0.0])


def test_keyword_rank():
    assert keyword_rank("licencia", "Trámite: Licencia de construcción", "...") == 1
    assert keyword_rank("planos", "Trámite: Licencia", "Requisitos: Planos, cédula") == 2
    # muletillas como "como" o "para" no cuentan
    assert keyword_rank("como pago predial", "Impuesto predial", "Formas de pago del impuesto predial") == 2
    assert keyword_rank("vehiculos", "Impuesto predial", "Pago") == 0
    assert keyword_rank("", "Impuesto predial", "Pago") == 0


def test_calculate_confidence():
    assert calculate_confidence("x" * 60, relevant_count=3) == 0.8
    assert calculate_confidence("corta", relevant_count=0) == 0.5
    assert calculate_confidence("No tengo información sobre eso", relevant_count=0) == 0.3


def test_build_knowledge_items_incluye_informacion_general(session):
    items = build_knowledge_items(session)
    generales = [i for i in items if i.content_type == "general"]
    assert [i.content_id for i in generales] == ["general-contact", "general-hours", "general-location"]
    assert get_settings().municipio_nombre in generales[0].content


def test_index_knowledge_indexa_y_elimina_obsoletos(session, tramite_data):
    tramite = create_tramite(session, tramite_data)
    session.commit()

    counts = index_knowledge(session)
    assert counts["errors"] == 0
    assert counts["general"] == 3
    entry = _entry(session, "tramite", tramite.id)
    assert entry.title == f"Trámite: {tramite.nombre}"
    assert len(entry.embedding) == get_settings().embedding_dimensions
    assert "Requiere pago: Sí" in entry.content

    update_tramite(session, tramite.id, {"activo": False})
    session.flush()
    counts = index_knowledge(session)
    assert counts["removed"] >= 1
    assert _entry(session, "tramite", tramite.id) is None


def test_index_knowledge_actualiza_contenido_modificado(session, tramite_data):
    tramite = create_tramite(session, tramite_data)
    session.flush()
    index_knowledge(session)

    update_tramite(session, tramite.id, {"tiempo_respuesta": "2 días hábiles"})
    session.flush()
    index_knowledge(session)
    assert "Tiempo de respuesta: 2 días hábiles" in _entry(session, "tramite", tramite.id).content


def test_hybrid_search_encuentra_por_texto(session, tramite_data):
    token = unique("kn")
    tramite = create_tramite(session, {**tramite_data, "nombre": f"Registro de mascotas {token}"})
    session.flush()
    index_knowledge(session)

    results = hybrid_search(session, token, limit=100)
    assert tramite.id in [r.content_id for r in results]
    match = next(r for r in results if r.content_id == tramite.id)
    assert match.metadata["codigo"] == tramite.codigo_unico
    assert match.to_dict()["content_type"] == "tramite"


def test_hybrid_search_consulta_vacia(session):
    assert hybrid_search(session, "   ") == []
