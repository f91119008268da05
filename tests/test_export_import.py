"""
Tests de exportación/importación de servicios y FAQs (CSV y JSON).
"""

import json
import uuid

import pytest

from portal_core.db.faqs import create_faq, get_faq, list_faqs
from portal_core.db.helpers import create_dependencia, create_subdependencia
from portal_core.db.services import create_opa, create_tramite, get_tramite_by_codigo
from portal_core.export import (
    export_faqs,
    export_services,
    import_faqs,
    import_services,
    parse_faqs,
    parse_services,
)
from portal_core.export.tabular import csv_to_rows, parse_bool

from conftest import DESCRIPCION_LARGA, unique


def _service_record(subdependencia, **overrides):
    record = {
        "codigo": unique("IMP-"),
        "nombre": "Certificado de estratificación",
        "descripcion": DESCRIPCION_LARGA,
        "tipo_servicio": "tramite",
        "dependencia_id": subdependencia.dependencia_id,
        "subdependencia_nombre": subdependencia.nombre,
        "requiere_pago": "no",
        "tiempo_respuesta": "1 día",
        "activo": "true",
        "requisitos": "Cédula|Recibo público",
        "instrucciones": "Solicitar|Reclamar",
    }
    record.update(overrides)
    return record


def _normalize(record):
    return parse_services(json.dumps([record]), "json")[0]


def test_parse_bool():
    assert parse_bool("Sí") is True
    assert parse_bool("0") is False
    assert parse_bool("", default=True) is True
    with pytest.raises(ValueError, match="booleano"):
        parse_bool("quizás")


def test_csv_to_rows_tolera_bom_y_filas_vacias():
    rows = csv_to_rows("\ufeffcodigo,nombre\nA,Uno\n,\nB,Dos\n")
    assert [r["codigo"] for r in rows] == ["A", "B"]


def test_export_services_csv(session, tramite_data, dependencia):
    tramite = create_tramite(session, tramite_data)
    session.commit()

    text = export_services(session, "csv", dependencia_id=dependencia.id)
    rows = csv_to_rows(text)
    assert len(rows) == 1
    assert rows[0]["codigo"] == tramite.codigo_unico
    assert rows[0]["requisitos"] == "Documento de identidad|Planos"
    assert rows[0]["requiere_pago"] == "true"
    assert rows[0]["dependencia_nombre"] == dependencia.nombre


def test_export_services_json(session, opa_data, dependencia):
    opa = create_opa(session, opa_data)
    session.commit()

    data = json.loads(export_services(session, "json", dependencia_id=dependencia.id))
    assert data[0]["codigo"] == opa.codigo_opa
    assert data[0]["tipo_servicio"] == "opa"
    assert data[0]["requisitos"] == ["Solicitud escrita"]
    assert data[0]["activo"] is True


def test_export_sin_registros_devuelve_csv_vacio(session, dependencia):
    assert export_services(session, "csv", dependencia_id=dependencia.id) == ""
    assert export_faqs(session, "json", dependencia_id=dependencia.id) == "[]"


def test_export_formato_invalido(session):
    with pytest.raises(ValueError, match="Formato no soportado"):
        export_services(session, "xml")


def test_parse_services_json_invalido():
    with pytest.raises(ValueError, match="JSON inválido"):
        parse_services("{no es json", "json")
    with pytest.raises(ValueError, match="lista"):
        parse_services('{"codigo": "A"}', "json")


def test_import_services_crea_y_reporta_errores(session, subdependencia):
    """Test: una fila inválida no detiene la importación del resto."""
    valido = _service_record(subdependencia)
    sin_nombre = _service_record(subdependencia, nombre="")
    sub_inexistente = _service_record(subdependencia, subdependencia_nombre="No existe")

    result = import_services(session, [_normalize(r) for r in (valido, sin_nombre, sub_inexistente)])
    assert result.created == 1
    assert len(result.errors) == 2
    assert result.errors[0].startswith("Fila 2")
    assert "no encontrada" in result.errors[1]
    assert result.success is False

    tramite = get_tramite_by_codigo(session, valido["codigo"])
    assert tramite.instructivo == ["Solicitar", "Reclamar"]
    assert tramite.subdependencia_id == subdependencia.id


def test_import_services_desde_csv(session, subdependencia):
    record = _service_record(subdependencia)
    headers = list(record)
    text = ",".join(headers) + "\n" + ",".join(record[h] for h in headers) + "\n"

    result = import_services(session, parse_services(text, "csv"))
    assert result.to_dict()["created"] == 1
    assert get_tramite_by_codigo(session, record["codigo"]).tiene_pago is False


def test_import_services_estrategias_de_conflicto(session, subdependencia):
    record = _service_record(subdependencia)
    import_services(session, [_normalize(record)])

    actualizado = {**record, "nombre": "Nombre actualizado"}
    assert import_services(session, [_normalize(actualizado)], "skip").skipped == 1
    assert get_tramite_by_codigo(session, record["codigo"]).nombre == record["nombre"]

    assert import_services(session, [_normalize(actualizado)], "update").updated == 1
    assert get_tramite_by_codigo(session, record["codigo"]).nombre == "Nombre actualizado"

    result = import_services(session, [_normalize(actualizado)], "create")
    assert result.created == 0
    assert "Ya existe" in result.errors[0]


def test_import_estrategia_invalida(session):
    with pytest.raises(ValueError, match="Estrategia de conflicto inválida"):
        import_services(session, [], "merge")


def test_export_import_faqs(session, subdependencia, dependencia):
    faq = create_faq(session, {
        "pregunta": "¿Dónde pago la multa?",
        "respuesta": "En la sede de movilidad.",
        "subdependencia_id": subdependencia.id,
        "palabras_clave": ["multa", "pago"],
        "orden": 2,
    })
    session.commit()

    text = export_faqs(session, "csv", dependencia_id=dependencia.id)
    records = parse_faqs(text, "csv")
    assert records[0]["palabras_clave"] == ["multa", "pago"]

    records[0]["respuesta"] = "En cualquier sede."
    result = import_faqs(session, records)
    assert result.updated == 1
    assert get_faq(session, faq.id).respuesta == "En cualquier sede."


def test_import_faqs_por_nombre_de_dependencia(session, dependencia):
    records = parse_faqs(json.dumps([
        {"pregunta": "¿Horario?", "respuesta": "8 a 5", "dependencia_nombre": dependencia.nombre, "orden": "1"},
        {"pregunta": "¿Sin respuesta?", "dependencia_nombre": dependencia.nombre},
        {"pregunta": "¿Orden?", "respuesta": "R", "dependencia_nombre": dependencia.nombre, "orden": "primero"},
    ]), "json")

    result = import_faqs(session, records)
    assert result.created == 1
    assert len(result.errors) == 2

    repetida = parse_faqs(json.dumps([{"pregunta": "¿HORARIO?", "respuesta": "x", "dependencia_id": dependencia.id}]), "json")
    assert import_faqs(session, repetida, "skip").skipped == 1


def test_import_services_valores_no_texto(session, subdependencia):
    """Test: números de JSON se toman como texto; objetos se reportan sin cortar el lote."""
    numero = uuid.uuid4().int % 10**9
    numerico = _service_record(subdependencia, codigo=numero, tiempo_respuesta=5)
    objeto = _service_record(subdependencia, nombre={"es": "Certificado"})
    valido = _service_record(subdependencia)

    records = parse_services(json.dumps([numerico, objeto, valido]), "json")
    result = import_services(session, records)

    assert result.created == 2
    assert len(result.errors) == 1
    assert result.errors[0].startswith("Fila 2")
    assert "nombre debe ser texto" in result.errors[0]
    assert get_tramite_by_codigo(session, str(numero)).tiempo_respuesta == "5"
    assert get_tramite_by_codigo(session, valido["codigo"]) is not None


def test_import_faqs_valores_no_texto(session, dependencia):
    records = parse_faqs(json.dumps([
        {"pregunta": ["¿Lista?"], "respuesta": "R", "dependencia_id": dependencia.id},
        {"pregunta": 2024, "respuesta": "Año de vigencia", "dependencia_id": dependencia.id},
    ]), "json")

    result = import_faqs(session, records)
    assert result.created == 1
    assert "pregunta debe ser texto" in result.errors[0]
    assert list_faqs(session, query="2024", dependencia_id=dependencia.id).total == 1


def test_import_services_mas_de_un_lote(session, subdependencia):
    """Test: los errores conservan el número de fila después del primer lote de 50."""
    records = [_service_record(subdependencia) for _ in range(55)]
    records[52]["nombre"] = ""

    result = import_services(session, [_normalize(r) for r in records])
    assert result.created == 54
    assert len(result.errors) == 1
    assert result.errors[0].startswith("Fila 53")
    assert get_tramite_by_codigo(session, records[54]["codigo"]) is not None


def test_import_services_update_fallido_no_modifica_existente(session, subdependencia):
    record = _service_record(subdependencia)
    import_services(session, [_normalize(record)])

    invalido = {**record, "nombre": "Nombre nuevo", "descripcion": "corta"}
    result = import_services(session, [_normalize(invalido)], "update")
    assert result.updated == 0
    assert "descripción" in result.errors[0]

    tramite = get_tramite_by_codigo(session, record["codigo"])
    assert tramite.nombre == record["nombre"]
    assert tramite.descripcion == DESCRIPCION_LARGA


def test_import_faqs_update_fallido_no_modifica_existente(session, subdependencia):
    faq = create_faq(session, {
        "pregunta": "¿Dónde reclamo el certificado?",
        "respuesta": "En la ventanilla única.",
        "subdependencia_id": subdependencia.id,
    })
    otra_dependencia = create_dependencia(session, codigo=unique("D"), nombre=f"Secretaría {unique()}")
    otra_sub = create_subdependencia(session, otra_dependencia.id, codigo=unique("S"), nombre="Ajena")
    session.commit()

    records = parse_faqs(json.dumps([{
        "id": faq.id,
        "pregunta": faq.pregunta,
        "respuesta": "Respuesta cambiada",
        "dependencia_id": subdependencia.dependencia_id,
        "subdependencia_id": otra_sub.id,
    }]), "json")
    result = import_faqs(session, records, "update")

    assert result.updated == 0
    assert "no pertenece" in result.errors[0]
    faq = get_faq(session, faq.id)
    assert faq.respuesta == "En la ventanilla única."
    assert faq.subdependencia_id == subdependencia.id
