"""
Tests de la jerarquía organizacional (dependencias y subdependencias).
"""

import pytest

from portal_core.db.faqs import create_faq
from portal_core.db.helpers import (
    Page,
    create_dependencia,
    create_subdependencia,
    delete_dependencia,
    delete_subdependencia,
    get_dependencia,
    list_active_dependencias,
    list_dependencias,
    list_subdependencias,
    paginate,
    update_dependencia,
    update_subdependencia,
)
from portal_core.db.services import create_tramite

from conftest import unique


def test_paginate_calcula_total_pages():
    page = paginate(list(range(23)), page=3, limit=10)
    assert page.items == [20, 21, 22]
    assert page.total == 23
    assert page.total_pages == 3


def test_paginate_rechaza_pagina_invalida():
    with pytest.raises(ValueError):
        paginate([], page=0)
    assert Page().total_pages == 0


def test_create_dependencia_valida_codigo_unico(session, dependencia):
    """Test: no se pueden repetir códigos de dependencia."""
    with pytest.raises(ValueError, match="Ya existe"):
        create_dependencia(session, codigo=dependencia.codigo, nombre="Otra")
    with pytest.raises(ValueError, match="nombre"):
        create_dependencia(session, codigo=unique("D"), nombre="  ")


def test_list_dependencias_incluye_conteos(session, subdependencia, tramite_data):
    """Test: los conteos suman trámites de todas las subdependencias."""
    create_tramite(session, tramite_data)
    create_subdependencia(session, subdependencia.dependencia_id, codigo=unique("S"), nombre="Otra oficina")
    session.commit()

    dep = get_dependencia(session, subdependencia.dependencia_id)
    result = list_dependencias(session, query=dep.nombre, limit=200)
    items = [i for i in result.items if i["dependencia"].id == dep.id]
    assert len(items) == 1
    assert items[0]["subdependencias_count"] == 2
    assert items[0]["tramites_count"] == 1
    assert items[0]["opas_count"] == 0


def test_list_dependencias_busqueda_sin_tildes(session):
    token = unique("hacienda")
    create_dependencia(session, codigo=unique("D"), nombre=f"Secretaría de Economía {token}")
    session.commit()

    result = list_dependencias(session, query=f"secretaria economia {token}")
    assert result.total == 1


def test_update_dependencia_parcial(session, dependencia):
    updated = update_dependencia(session, dependencia.id, {"descripcion": "Nueva descripción"})
    assert updated.descripcion == "Nueva descripción"
    assert updated.nombre == dependencia.nombre


def test_list_active_dependencias_excluye_inactivas(session):
    inactiva = create_dependencia(session, codigo=unique("D"), nombre="Inactiva", activo=False)
    session.commit()
    assert inactiva.id not in [d.id for d in list_active_dependencias(session)]


def test_delete_dependencia_con_subdependencias_falla(session, subdependencia):
    """Test: no se puede borrar una dependencia con subdependencias."""
    with pytest.raises(ValueError, match="subdependencias"):
        delete_dependencia(session, subdependencia.dependencia_id)


def test_delete_dependencia_con_faqs_falla(session, dependencia):
    create_faq(session, {"pregunta": "¿Pregunta?", "respuesta": "Respuesta", "dependencia_id": dependencia.id})
    with pytest.raises(ValueError, match="FAQs"):
        delete_dependencia(session, dependencia.id)


def test_delete_dependencia_vacia(session):
    dep = create_dependencia(session, codigo=unique("D"), nombre="Temporal")
    session.commit()
    assert delete_dependencia(session, dep.id) is True
    session.commit()
    assert get_dependencia(session, dep.id) is None


def test_create_subdependencia_requiere_dependencia_existente(session):
    with pytest.raises(ValueError, match="no encontrada"):
        create_subdependencia(session, "no-existe", codigo="001", nombre="X")


def test_create_subdependencia_codigo_unico_por_dependencia(session, subdependencia):
    with pytest.raises(ValueError, match="Ya existe"):
        create_subdependencia(session, subdependencia.dependencia_id, codigo=subdependencia.codigo, nombre="X")


def test_list_subdependencias_filtra_por_dependencia(session, subdependencia, tramite_data):
    create_tramite(session, tramite_data)
    session.commit()

    result = list_subdependencias(session, dependencia_id=subdependencia.dependencia_id)
    assert result.total == 1
    assert result.items[0]["subdependencia"].id == subdependencia.id
    assert result.items[0]["tramites_count"] == 1


def test_update_subdependencia_valida_dependencia(session, subdependencia):
    with pytest.raises(ValueError, match="no encontrada"):
        update_subdependencia(session, subdependencia.id, {"dependencia_id": "no-existe"})


def test_update_subdependencia_codigo_unico_por_dependencia(session, subdependencia):
    otra = create_subdependencia(session, subdependencia.dependencia_id, codigo=unique("S"), nombre="Otra")
    session.flush()

    with pytest.raises(ValueError, match="Ya existe"):
        update_subdependencia(session, otra.id, {"codigo": f" {subdependencia.codigo} "})

    # mismo código que ya tiene: no es conflicto
    updated = update_subdependencia(session, otra.id, {"codigo": otra.codigo, "nombre": "Renombrada"})
    assert updated.nombre == "Renombrada"


def test_update_subdependencia_codigo_repetido_en_dependencia_destino(session, subdependencia):
    destino = create_dependencia(session, codigo=unique("D"), nombre=f"Secretaría {unique()}")
    create_subdependencia(session, destino.id, codigo=subdependencia.codigo, nombre="Homónima")
    session.flush()

    with pytest.raises(ValueError, match="Ya existe"):
        update_subdependencia(session, subdependencia.id, {"dependencia_id": destino.id})
    assert subdependencia.dependencia_id != destino.id


def test_delete_subdependencia_con_tramites_falla(session, subdependencia, tramite_data):
    create_tramite(session, tramite_data)
    session.commit()
    with pytest.raises(ValueError, match="trámites"):
        delete_subdependencia(session, subdependencia.id)
