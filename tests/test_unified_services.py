"""
Tests de la gestión unificada de servicios (trámites + OPAs).
"""

import pytest

from portal_core.unified_services import (
    ServiceFilters,
    calculate_metrics,
    create_service,
    delete_service,
    get_service,
    list_services,
    to_model_data,
    toggle_service_active,
    update_service,
)

from conftest import DESCRIPCION_LARGA, unique


@pytest.fixture
def service_data(subdependencia):
    return {
        "tipo": "tramite",
        "codigo": unique("T-"),
        "nombre": f"Paz y salvo predial {unique()}",
        "descripcion": DESCRIPCION_LARGA,
        "tiempo_respuesta": "3 días hábiles",
        "tiene_pago": False,
        "requisitos": ["Cédula"],
        "instrucciones": ["Solicitar en ventanilla"],
        "subdependencia_id": subdependencia.id,
    }


def test_to_model_data_mapea_campos_genericos():
    data = to_model_data("tramite", {"tipo": "tramite", "codigo": "T-1", "instrucciones": ["a"], "otro": 1})
    assert data == {"codigo_unico": "T-1", "instructivo": ["a"]}

    data = to_model_data("opa", {"codigo": "O-1", "instrucciones": ["a"]})
    assert data == {"codigo_opa": "O-1"}


def test_create_service_tramite(session, service_data, dependencia):
    item = create_service(session, service_data)
    assert item.tipo == "tramite"
    assert item.codigo == service_data["codigo"]
    assert item.instrucciones == ["Solicitar en ventanilla"]
    assert item.dependencia == {"id": dependencia.id, "nombre": dependencia.nombre}


def test_create_service_opa(session, service_data):
    item = create_service(session, {**service_data, "tipo": "opa", "codigo": unique("OPA-")})
    assert item.tipo == "opa"
    assert item.instrucciones == []
    assert get_service(session, "opa", item.id).codigo == item.codigo


def test_create_service_tipo_invalido(session, service_data):
    with pytest.raises(ValueError, match="Tipo de servicio inválido"):
        create_service(session, {**service_data, "tipo": "certificado"})


def test_list_services_ordenados_por_nombre_con_metricas(session, service_data, subdependencia):
    create_service(session, {**service_data, "nombre": "Zonas verdes"})
    create_service(session, {**service_data, "tipo": "opa", "codigo": unique("OPA-"), "nombre": "Árboles"})
    session.commit()

    result = list_services(session, ServiceFilters(subdependencia_id=subdependencia.id))
    assert [i.nombre for i in result["page"].items] == ["Árboles", "Zonas verdes"]
    assert set(result["metrics"]) == {"tramites", "opas", "combined", "dependencias", "subdependencias"}


def test_list_services_filtra_por_tipo_y_dependencia(session, service_data, dependencia):
    create_service(session, service_data)
    create_service(session, {**service_data, "tipo": "opa", "codigo": unique("OPA-")})
    session.commit()

    result = list_services(session, ServiceFilters(service_type="opa", dependencia_id=dependencia.id))
    assert [i.tipo for i in result["page"].items] == ["opa"]
    with pytest.raises(ValueError):
        list_services(session, ServiceFilters(service_type="faq"))


def test_calculate_metrics_combina_tipos(session):
    metrics = calculate_metrics(session)
    for key, value in metrics["combined"].items():
        assert value == metrics["tramites"][key] + metrics["opas"][key]
    assert metrics["combined"]["activos"] + metrics["combined"]["inactivos"] == metrics["combined"]["total"]


def test_update_service_usa_campos_genericos(session, service_data):
    item = create_service(session, service_data)
    updated = update_service(session, "tramite", item.id, {"instrucciones": ["Paso 1", "Paso 2"]})
    assert updated.instrucciones == ["Paso 1", "Paso 2"]


def test_toggle_service_revalida_al_activar(session, service_data):
    """Test: un trámite sin instructivo puede desactivarse pero no reactivarse."""
    item = create_service(session, {**service_data, "activo": False, "instrucciones": []})
    with pytest.raises(ValueError, match="instructivo"):
        toggle_service_active(session, "tramite", item.id)

    activo = create_service(session, {**service_data, "codigo": unique("T-")})
    assert toggle_service_active(session, "tramite", activo.id).activo is False


def test_delete_service(session, service_data):
    item = create_service(session, service_data)
    session.commit()
    assert delete_service(session, "tramite", item.id) is True
    session.commit()
    assert get_service(session, "tramite", item.id) is None
