"""
Tests de FAQs y de temas (agrupación virtual de FAQs por subdependencia).
"""

import pytest

from portal_core.db.faqs import (
    SIN_CATEGORIA,
    create_faq,
    get_faq_hierarchy,
    list_faq_keywords,
    list_faqs,
    list_faqs_by_tema,
    update_faq,
)
from portal_core.db.helpers import create_dependencia, create_subdependencia
from portal_core.db.temas import delete_tema, list_tema_names, list_temas, rename_tema, tema_id

from conftest import unique


@pytest.fixture
def faq_factory(session, subdependencia):
    def _create(**overrides):
        data = {
            "pregunta": f"¿Cómo pago el impuesto predial? {unique()}",
            "respuesta": "En línea o en los bancos autorizados.",
            "subdependencia_id": subdependencia.id,
            "tema": "Impuesto predial",
            "palabras_clave": ["predial", "pago"],
        }
        data.update(overrides)
        faq = create_faq(session, data)
        session.commit()
        return faq

    return _create


def test_create_faq_completa_dependencia_desde_subdependencia(session, subdependencia):
    faq = create_faq(session, {"pregunta": "¿P?", "respuesta": "R", "subdependencia_id": subdependencia.id})
    assert faq.dependencia_id == subdependencia.dependencia_id


def test_create_faq_subdependencia_de_otra_dependencia_falla(session, subdependencia):
    """Test: la subdependencia debe pertenecer a la dependencia indicada."""
    otra = create_dependencia(session, codigo=unique("D"), nombre="Otra")
    with pytest.raises(ValueError, match="no pertenece"):
        create_faq(session, {
            "pregunta": "¿P?",
            "respuesta": "R",
            "dependencia_id": otra.id,
            "subdependencia_id": subdependencia.id,
        })


def test_create_faq_requiere_pregunta_y_dependencia(session, dependencia):
    with pytest.raises(ValueError, match="pregunta"):
        create_faq(session, {"pregunta": " ", "respuesta": "R", "dependencia_id": dependencia.id})
    with pytest.raises(ValueError, match="dependencia es requerida"):
        create_faq(session, {"pregunta": "¿P?", "respuesta": "R"})


def test_list_faqs_busca_en_palabras_clave(session, faq_factory):
    token = unique("kw")
    faq = faq_factory(palabras_clave=[token])
    result = list_faqs(session, query=token)
    assert [f.id for f in result.items] == [faq.id]


def test_list_faqs_mas_recientes_primero(session, faq_factory, subdependencia):
    primera = faq_factory()
    segunda = faq_factory()
    ids = [f.id for f in list_faqs(session, subdependencia_id=subdependencia.id).items]
    assert ids.index(segunda.id) < ids.index(primera.id)


def test_list_faq_keywords_unicas_y_ordenadas(session, faq_factory):
    token = unique("zz")
    faq_factory(palabras_clave=[f"{token}b", f"{token}a"])
    faq_factory(palabras_clave=[f"{token}a"])
    keywords = [k for k in list_faq_keywords(session) if k.startswith(token)]
    assert keywords == [f"{token}a", f"{token}b"]


def test_list_faqs_by_tema_ordenadas_por_orden(session, faq_factory, subdependencia):
    segunda = faq_factory(tema="Licencias", orden=2)
    primera = faq_factory(tema="Licencias", orden=1)
    faq_factory(tema="Licencias", orden=0, activo=False)

    faqs = list_faqs_by_tema(session, subdependencia.id, "Licencias")
    assert [f.id for f in faqs] == [primera.id, segunda.id]


def test_get_faq_hierarchy_agrupa_por_tema(session, faq_factory, subdependencia):
    con_tema = faq_factory(tema="Impuesto predial")
    sin_tema = faq_factory(tema=None)

    node = next(n for n in get_faq_hierarchy(session) if n["dependencia"].id == subdependencia.dependencia_id)
    assert len(node["subdependencias"]) == 1
    temas = {t["tema"]: [f.id for f in t["faqs"]] for t in node["subdependencias"][0]["temas"]}
    assert temas["Impuesto predial"] == [con_tema.id]
    assert temas[SIN_CATEGORIA] == [sin_tema.id]


def test_update_faq_valida_jerarquia(session, faq_factory):
    faq = faq_factory()
    otra = create_dependencia(session, codigo=unique("D"), nombre="Otra")
    with pytest.raises(ValueError, match="no pertenece"):
        update_faq(session, faq.id, {"dependencia_id": otra.id})


def test_list_temas_cuenta_faqs_activas(session, faq_factory, subdependencia):
    faq_factory(tema="Impuesto predial")
    faq_factory(tema="Impuesto predial")
    faq_factory(tema="Impuesto predial", activo=False)
    faq_factory(tema="Descuentos")

    temas = list_temas(session, subdependencia_id=subdependencia.id)
    assert [t["nombre"] for t in temas] == ["Descuentos", "Impuesto predial"]
    predial = temas[1]
    assert predial["faqs_count"] == 2
    assert predial["id"] == tema_id(subdependencia.id, "Impuesto predial")
    assert predial["id"] == f"tema-{subdependencia.id}-impuesto-predial"
    assert predial["subdependencia_nombre"] == subdependencia.nombre


def test_rename_tema(session, faq_factory, subdependencia):
    faq_factory(tema="Viejo")
    faq_factory(tema="Viejo")

    assert rename_tema(session, subdependencia.id, "Viejo", "Nuevo") == 2
    assert list_tema_names(session, subdependencia.id) == ["Nuevo"]
    with pytest.raises(ValueError, match="no encontrado"):
        rename_tema(session, subdependencia.id, "Viejo", "Otro")
    with pytest.raises(ValueError, match="requerido"):
        rename_tema(session, subdependencia.id, "Nuevo", " ")


def test_delete_tema_deja_faqs_sin_tema(session, faq_factory, subdependencia):
    faq = faq_factory(tema="Temporal")
    assert delete_tema(session, subdependencia.id, "Temporal") == 1
    session.flush()
    session.refresh(faq)
    assert faq.tema is None
    assert list_tema_names(session, subdependencia.id) == []


def test_list_tema_names_de_otra_subdependencia(session, faq_factory, subdependencia):
    faq_factory(tema="Propio")
    otra = create_subdependencia(session, subdependencia.dependencia_id, codigo=unique("S"), nombre="Otra")
    assert list_tema_names(session, otra.id) == []
