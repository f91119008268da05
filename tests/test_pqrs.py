"""
Tests de radicación, búsqueda y gestión de PQRS.
"""

import re
from datetime import datetime, timedelta

import pytest

from portal_core.db.pqrs import (
    create_pqrs,
    delete_pqrs,
    generate_radicado,
    get_pqrs,
    get_pqrs_by_radicado,
    get_pqrs_stats,
    search_pqrs,
    update_pqrs_status,
)

from conftest import unique


@pytest.fixture
def pqrs_data(dependencia):
    return {
        "tipo": "peticion",
        "nombre": "Ana Pérez",
        "email": "ana@example.com",
        "telefono": "3001234567",
        "dependencia_id": dependencia.id,
        "asunto": "Solicitud de poda de árbol",
        "descripcion": "El árbol frente a mi casa está por caerse.",
    }


def test_generate_radicado_formato():
    assert re.fullmatch(r"PQRS-\d{13}-\d{3}", generate_radicado())


def test_create_pqrs_estado_inicial_y_radicado(session, pqrs_data):
    pqrs = create_pqrs(session, pqrs_data)
    assert pqrs.estado == "pendiente"
    assert pqrs.numero_radicado.startswith("PQRS-")
    assert get_pqrs_by_radicado(session, pqrs.numero_radicado).id == pqrs.id


@pytest.mark.parametrize(
    "override, message",
    [
        ({"tipo": "denuncia"}, "Tipo de PQRS inválido"),
        ({"email": "no-es-un-email"}, "Email inválido"),
        ({"asunto": "  "}, "asunto es requerido"),
        ({"dependencia_id": "no-existe"}, "no encontrada"),
    ],
)
def test_create_pqrs_validaciones(session, pqrs_data, override, message):
    with pytest.raises(ValueError, match=message):
        create_pqrs(session, {**pqrs_data, **override})


def test_telefono_vacio_queda_en_none(session, pqrs_data):
    pqrs = create_pqrs(session, {**pqrs_data, "telefono": "  "})
    assert pqrs.telefono is None


def test_search_pqrs_por_texto_y_filtros(session, pqrs_data, dependencia):
    token = unique("poda")
    queja = create_pqrs(session, {**pqrs_data, "tipo": "queja", "asunto": f"Queja {token}"})
    create_pqrs(session, {**pqrs_data, "asunto": f"Petición {token}"})
    session.commit()

    assert search_pqrs(session, query=token).total == 2
    result = search_pqrs(session, query=token, tipo="queja")
    assert [p.id for p in result.items] == [queja.id]
    assert search_pqrs(session, dependencia_id=dependencia.id, estado="resuelto").total == 0


def test_search_pqrs_por_fechas(session, pqrs_data, dependencia):
    pqrs = create_pqrs(session, pqrs_data)
    session.commit()
    ahora = datetime.utcnow()

    assert search_pqrs(session, dependencia_id=dependencia.id, fecha_desde=ahora + timedelta(days=1)).total == 0
    result = search_pqrs(session, dependencia_id=dependencia.id, fecha_desde=ahora - timedelta(days=1))
    assert [p.id for p in result.items] == [pqrs.id]


def test_update_pqrs_status_con_respuesta(session, pqrs_data):
    pqrs = create_pqrs(session, pqrs_data)
    updated = update_pqrs_status(session, pqrs.id, "resuelto", "Se programó la poda.")
    assert updated.estado == "resuelto"
    assert updated.respuesta == "Se programó la poda."
    assert updated.fecha_respuesta is not None


def test_update_pqrs_status_sin_respuesta_no_fija_fecha(session, pqrs_data):
    pqrs = create_pqrs(session, pqrs_data)
    updated = update_pqrs_status(session, pqrs.id, "en_proceso")
    assert updated.fecha_respuesta is None
    with pytest.raises(ValueError, match="Estado inválido"):
        update_pqrs_status(session, pqrs.id, "archivado")


def test_get_pqrs_stats_cuenta_nuevas(session, pqrs_data):
    antes = get_pqrs_stats(session)
    pqrs = create_pqrs(session, {**pqrs_data, "tipo": "sugerencia"})
    session.flush()
    update_pqrs_status(session, pqrs.id, "resuelto", "Gracias por la sugerencia")
    session.flush()

    despues = get_pqrs_stats(session)
    assert despues["total"] == antes["total"] + 1
    assert despues["by_tipo"]["sugerencia"] == antes["by_tipo"]["sugerencia"] + 1
    assert despues["by_estado"]["resuelto"] == antes["by_estado"]["resuelto"] + 1
    assert despues["this_month"] == antes["this_month"] + 1
    assert despues["avg_response_time_days"] is not None


def test_delete_pqrs(session, pqrs_data):
    pqrs = create_pqrs(session, pqrs_data)
    session.commit()
    assert delete_pqrs(session, pqrs.id) is True
    session.commit()
    assert get_pqrs(session, pqrs.id) is None
