"""
Tests de trámites y OPAs: validaciones, listados y actualizaciones.
"""

import pytest

from portal_core.db.services import (
    create_opa,
    create_tramite,
    delete_tramite,
    get_tramite,
    get_tramite_by_codigo,
    list_opas,
    list_tramites,
    update_opa,
    update_tramite,
)

from conftest import unique


def test_create_tramite_valido(session, tramite_data):
    tramite = create_tramite(session, tramite_data)
    assert tramite.id
    assert tramite.activo is True
    assert get_tramite_by_codigo(session, tramite_data["codigo_unico"]).id == tramite.id


def test_create_tramite_codigo_duplicado(session, tramite_data):
    create_tramite(session, tramite_data)
    with pytest.raises(ValueError, match="Ya existe un trámite"):
        create_tramite(session, {**tramite_data, "nombre": "Otro"})


def test_tramite_activo_requiere_instructivo(session, tramite_data):
    """Test: un trámite activo sin pasos no es válido, uno inactivo sí."""
    with pytest.raises(ValueError, match="instructivo"):
        create_tramite(session, {**tramite_data, "instructivo": []})
    tramite = create_tramite(session, {**tramite_data, "instructivo": ["  "], "activo": False})
    assert tramite.instructivo == []


def test_tramite_descripcion_corta_falla(session, tramite_data):
    with pytest.raises(ValueError, match="50 caracteres"):
        create_tramite(session, {**tramite_data, "descripcion": "Muy corta"})


def test_tramite_url_invalida_falla(session, tramite_data):
    with pytest.raises(ValueError, match="URL"):
        create_tramite(session, {**tramite_data, "visualizacion_gov": "ftp://gov.co/tramite"})
    tramite = create_tramite(session, {**tramite_data, "visualizacion_gov": "https://www.gov.co/t/1"})
    assert tramite.visualizacion_gov == "https://www.gov.co/t/1"


def test_tramite_requiere_subdependencia(session, tramite_data):
    with pytest.raises(ValueError, match="subdependencia es requerida"):
        create_tramite(session, {**tramite_data, "subdependencia_id": None})


def test_tramite_modalidad_invalida(session, tramite_data):
    with pytest.raises(ValueError, match="Modalidad"):
        create_tramite(session, {**tramite_data, "modalidad": "telepatica"})


def test_list_tramites_busqueda_sin_tildes(session, tramite_data, subdependencia):
    token = unique("zq")
    create_tramite(session, {**tramite_data, "nombre": f"Certificado de Residencia {token}"})
    create_tramite(session, {**tramite_data, "codigo_unico": unique("T-"), "nombre": f"Otro trámite {unique()}"})
    session.commit()

    result = list_tramites(session, query=f"CERTIFICADO residencia {token}")
    assert result.total == 1

    por_sub = list_tramites(session, subdependencia_id=subdependencia.id)
    assert por_sub.total == 2
    por_dep = list_tramites(session, dependencia_id=subdependencia.dependencia_id)
    assert por_dep.total == 2


def test_list_tramites_ordenados_por_nombre(session, tramite_data, subdependencia):
    create_tramite(session, {**tramite_data, "nombre": "Zonificación"})
    create_tramite(session, {**tramite_data, "codigo_unico": unique("T-"), "nombre": "Árbol urbano"})
    session.commit()

    nombres = [t.nombre for t in list_tramites(session, subdependencia_id=subdependencia.id).items]
    assert nombres == ["Árbol urbano", "Zonificación"]


def test_update_tramite_revalida(session, tramite_data):
    tramite = create_tramite(session, tramite_data)
    with pytest.raises(ValueError, match="instructivo"):
        update_tramite(session, tramite.id, {"instructivo": []})


def test_update_tramite_parcial(session, tramite_data):
    tramite = create_tramite(session, tramite_data)
    updated = update_tramite(session, tramite.id, {"tiempo_respuesta": "5 días"})
    assert updated.tiempo_respuesta == "5 días"
    assert updated.requisitos == tramite_data["requisitos"]


def test_delete_tramite(session, tramite_data):
    tramite = create_tramite(session, tramite_data)
    session.commit()
    delete_tramite(session, tramite.id)
    session.commit()
    assert get_tramite(session, tramite.id) is None
    with pytest.raises(ValueError, match="no encontrado"):
        delete_tramite(session, tramite.id)


def test_opa_activa_requiere_requisitos_y_tiempo(session, opa_data):
    with pytest.raises(ValueError, match="requisitos"):
        create_opa(session, {**opa_data, "requisitos": []})
    with pytest.raises(ValueError, match="tiempo de respuesta"):
        create_opa(session, {**opa_data, "tiempo_respuesta": ""})


def test_opa_formulario_vacio_falla(session, opa_data):
    with pytest.raises(ValueError, match="formulario"):
        create_opa(session, {**opa_data, "formulario": "   "})


def test_list_opas_busca_por_codigo(session, opa_data):
    opa = create_opa(session, opa_data)
    session.commit()
    result = list_opas(session, query=opa.codigo_opa)
    assert [o.id for o in result.items] == [opa.id]


def test_update_opa_inactiva_sin_requisitos(session, opa_data):
    opa = create_opa(session, opa_data)
    updated = update_opa(session, opa.id, {"activo": False, "requisitos": []})
    assert updated.activo is False
    assert updated.requisitos == []
