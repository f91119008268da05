"""
Tests de la API HTTP: autenticación, permisos y flujos principales.

Los datos se crean por HTTP para no mantener transacciones abiertas sobre
SQLite mientras el cliente de pruebas hace requests.
"""

import time

import jwt
import pytest
from fastapi.testclient import TestClient

from api.main import app

from conftest import DESCRIPCION_LARGA, unique


def _token(role: str, user_id: str | None = None) -> str:
    payload = {
        "sub": user_id or unique("user-"),
        "email": f"{role}@example.com",
        "role": role,
        "exp": int(time.time()) + 3600,
    }
    return jwt.encode(payload, "test-secret", algorithm="HS256")


def _auth(role: str) -> dict:
    return {"Authorization": f"Bearer {_token(role)}"}


@pytest.fixture(scope="module")
def client():
    return TestClient(app)


@pytest.fixture
def funcionario():
    return _auth("funcionario")


@pytest.fixture
def admin():
    return _auth("admin")


@pytest.fixture
def org(client, funcionario):
    """Dependencia y subdependencia creadas por la API."""
    dep = client.post(
        "/api/v1/dependencias",
        json={"codigo": unique("D"), "nombre": f"Secretaría {unique()}"},
        headers=funcionario,
    )
    assert dep.status_code == 201, dep.text
    sub = client.post(
        "/api/v1/subdependencias",
        json={"dependencia_id": dep.json()["id"], "codigo": unique("S"), "nombre": f"Oficina {unique()}"},
        headers=funcionario,
    )
    assert sub.status_code == 201, sub.text
    return {"dependencia": dep.json(), "subdependencia": sub.json()}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["llm_mode"] == "simulado"


def test_escritura_sin_token_401(client):
    response = client.post("/api/v1/dependencias", json={"codigo": "X", "nombre": "X"})
    assert response.status_code == 401


def test_token_invalido_401(client):
    response = client.post(
        "/api/v1/dependencias",
        json={"codigo": "X", "nombre": "X"},
        headers={"Authorization": "Bearer no-es-un-jwt"},
    )
    assert response.status_code == 401
    response = client.post("/api/v1/dependencias", json={}, headers={"Authorization": "Token abc"})
    assert response.status_code == 401


def test_ciudadano_sin_permiso_403(client):
    response = client.post("/api/v1/dependencias", json={"codigo": "X", "nombre": "X"}, headers=_auth("ciudadano"))
    assert response.status_code == 403
    assert "catalog.write" in response.json()["detail"]


def test_crud_tramite(client, org, funcionario):
    sub_id = org["subdependencia"]["id"]
    payload = {
        "codigo_unico": unique("T-"),
        "nombre": "Certificado de residencia",
        "subdependencia_id": sub_id,
        "descripcion": DESCRIPCION_LARGA,
        "instructivo": ["Solicitar", "Reclamar"],
        "modalidad": "virtual",
    }
    created = client.post("/api/v1/tramites", json=payload, headers=funcionario)
    assert created.status_code == 201, created.text
    tramite = created.json()
    assert tramite["dependencia_id"] == org["dependencia"]["id"]
    assert tramite["subdependencia_nombre"] == org["subdependencia"]["nombre"]

    duplicado = client.post("/api/v1/tramites", json=payload, headers=funcionario)
    assert duplicado.status_code == 400

    listado = client.get("/api/v1/tramites", params={"subdependencia_id": sub_id})
    assert listado.json()["total"] == 1

    updated = client.put(f"/api/v1/tramites/{tramite['id']}", json={"tiene_pago": True}, headers=funcionario)
    assert updated.status_code == 200
    assert updated.json()["tiene_pago"] is True
    assert updated.json()["instructivo"] == ["Solicitar", "Reclamar"]

    invalido = client.put(f"/api/v1/tramites/{tramite['id']}", json={"instructivo": []}, headers=funcionario)
    assert invalido.status_code == 400

    assert client.delete(f"/api/v1/tramites/{tramite['id']}", headers=funcionario).status_code == 200
    assert client.get(f"/api/v1/tramites/{tramite['id']}").status_code == 404


def test_borrar_dependencia_requiere_admin(client, org, funcionario, admin):
    dep_id = org["dependencia"]["id"]
    assert client.delete(f"/api/v1/dependencias/{dep_id}", headers=funcionario).status_code == 403
    # tiene subdependencias
    assert client.delete(f"/api/v1/dependencias/{dep_id}", headers=admin).status_code == 400

    sub_id = org["subdependencia"]["id"]
    assert client.delete(f"/api/v1/subdependencias/{sub_id}", headers=funcionario).status_code == 200
    assert client.delete(f"/api/v1/dependencias/{dep_id}", headers=admin).status_code == 200


def test_faqs_y_temas(client, org, funcionario):
    sub_id = org["subdependencia"]["id"]
    for pregunta in ("¿Horario?", "¿Dirección?"):
        response = client.post(
            "/api/v1/faqs",
            json={"pregunta": pregunta, "respuesta": "R", "subdependencia_id": sub_id, "tema": "Atención"},
            headers=funcionario,
        )
        assert response.status_code == 201, response.text

    temas = client.get("/api/v1/temas", params={"subdependencia_id": sub_id}).json()
    assert [(t["nombre"], t["faqs_count"]) for t in temas] == [("Atención", 2)]

    renamed = client.put(
        "/api/v1/temas",
        json={"subdependencia_id": sub_id, "nombre_actual": "Atención", "nombre_nuevo": "Atención al público"},
        headers=funcionario,
    )
    assert renamed.status_code == 200
    assert renamed.json()["faqs_actualizadas"] == 2

    faltante = client.put(
        "/api/v1/temas",
        json={"subdependencia_id": sub_id, "nombre_actual": "No existe", "nombre_nuevo": "X"},
        headers=funcionario,
    )
    assert faltante.status_code == 404

    by_tema = client.get("/api/v1/faqs/by-tema", params={"subdependencia_id": sub_id, "tema": "Atención al público"})
    assert len(by_tema.json()) == 2


def test_pqrs_publica_y_gestion(client, org, funcionario, admin):
    created = client.post("/api/v1/pqrs", json={
        "tipo": "queja",
        "nombre": "Luis",
        "email": "luis@example.com",
        "dependencia_id": org["dependencia"]["id"],
        "asunto": "Alumbrado público",
        "descripcion": "La luminaria de la cuadra no funciona.",
    })
    assert created.status_code == 201, created.text
    pqrs = created.json()
    assert pqrs["estado"] == "pendiente"

    consulta = client.get(f"/api/v1/pqrs/radicado/{pqrs['numero_radicado']}")
    assert consulta.status_code == 200
    assert consulta.json()["id"] == pqrs["id"]

    assert client.get("/api/v1/pqrs").status_code == 401
    listado = client.get("/api/v1/pqrs", params={"dependencia_id": org["dependencia"]["id"]}, headers=funcionario)
    assert listado.json()["total"] == 1

    updated = client.patch(
        f"/api/v1/pqrs/{pqrs['id']}/estado",
        json={"estado": "resuelto", "respuesta": "Se reparó la luminaria."},
        headers=funcionario,
    )
    assert updated.status_code == 200
    assert updated.json()["fecha_respuesta"] is not None

    assert client.delete(f"/api/v1/pqrs/{pqrs['id']}", headers=funcionario).status_code == 403
    assert client.delete(f"/api/v1/pqrs/{pqrs['id']}", headers=admin).status_code == 200


def test_pqrs_email_invalido_400(client, org):
    response = client.post("/api/v1/pqrs", json={
        "tipo": "peticion",
        "nombre": "Luis",
        "email": "sin-arroba",
        "dependencia_id": org["dependencia"]["id"],
        "asunto": "A",
        "descripcion": "D",
    })
    assert response.status_code == 400


def test_search_endpoint(client, org, funcionario):
    token = unique("api")
    client.post("/api/v1/opas", json={
        "codigo_opa": unique("OPA-"),
        "nombre": f"Permiso {token}",
        "subdependencia_id": org["subdependencia"]["id"],
        "requisitos": ["Carta"],
        "tiempo_respuesta": "5 días",
    }, headers=funcionario)

    response = client.get("/api/v1/search", params={"query": token})
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["tipo"] == "opa"

    assert client.get("/api/v1/search", params={"tipo": "noticia"}).status_code == 400


def test_servicios_toggle(client, org, funcionario):
    created = client.post("/api/v1/servicios", json={
        "tipo": "tramite",
        "codigo": unique("T-"),
        "nombre": "Registro de marca",
        "subdependencia_id": org["subdependencia"]["id"],
        "instrucciones": ["Paso único"],
    }, headers=funcionario)
    assert created.status_code == 201, created.text
    service_id = created.json()["id"]

    toggled = client.post(f"/api/v1/servicios/tramite/{service_id}/toggle", headers=funcionario)
    assert toggled.status_code == 200
    assert toggled.json()["activo"] is False

    assert client.get(f"/api/v1/servicios/faq/{service_id}").status_code == 422


def test_export_csv_como_adjunto(client, org):
    response = client.get("/api/v1/export/servicios", params={"format": "csv", "dependencia_id": org["dependencia"]["id"]})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment; filename=servicios_" in response.headers["content-disposition"]


def test_import_json_invalido_400(client, funcionario):
    response = client.post(
        "/api/v1/import/servicios",
        json={"format": "json", "content": "{roto", "conflict_strategy": "update"},
        headers=funcionario,
    )
    assert response.status_code == 400


def test_chat_y_feedback(client):
    response = client.post("/api/v1/chat", json={"message": "¿Cuál es el horario de atención?"})
    assert response.status_code == 200, response.text
    data = response.json()

    session = client.get("/api/v1/chat/session", params={"session_token": data["session_token"]})
    assert session.status_code == 200
    assert len(session.json()["messages"]) == 2

    feedback = client.post("/api/v1/chat/feedback", json={"message_id": data["message_id"], "feedback_type": "helpful"})
    assert feedback.status_code == 201
    repetido = client.post("/api/v1/chat/feedback", json={"message_id": data["message_id"], "feedback_type": "helpful"})
    assert repetido.status_code == 409

    assert client.post("/api/v1/chat", json={"message": ""}).status_code == 400
    assert client.get("/api/v1/chat/session", params={"session_token": "no-existe"}).status_code == 404


def test_statistics(client):
    response = client.get("/api/v1/statistics")
    assert response.status_code == 200
