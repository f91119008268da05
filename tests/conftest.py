"""
Configuración común de tests.

La base de datos es un SQLite temporal compartido por toda la sesión de
pytest, así que los fixtures generan códigos únicos con uuid. OpenAI queda en
modo simulado (sin API key).
"""

import os
import tempfile
import uuid

_TMP_DIR = tempfile.mkdtemp(prefix="portal-ciudadano-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR}/test.sqlite"
os.environ["OPENAI_API_KEY"] = ""
os.environ["JWT_SECRET"] = "test-secret"
os.environ["CHAT_RATE_LIMIT_MAX_REQUESTS"] = "1000"

import pytest

from portal_core.config import get_settings

get_settings.cache_clear()

from portal_core.db.database import get_db_session, init_db
from portal_core.db.helpers import create_dependencia, create_subdependencia

init_db()

DESCRIPCION_LARGA = (
    "Descripción de prueba con el largo suficiente para cumplir la validación "
    "mínima de cincuenta caracteres."
)


def unique(prefix: str = "") -> str:
    return f"{prefix}{uuid.uuid4().hex[:8]}"


@pytest.fixture
def session():
    """Fixture que proporciona una sesión de base de datos para los tests.

    Usa get_db_session() que maneja commit/rollback automáticamente.
    """
    with get_db_session() as db_session:
        yield db_session


@pytest.fixture
def dependencia(session):
    """Crea una dependencia de prueba."""
    dep = create_dependencia(session, codigo=unique("D"), nombre=f"Secretaría {unique()}")
    session.commit()
    return dep


@pytest.fixture
def subdependencia(session, dependencia):
    """Crea una subdependencia de prueba dentro de `dependencia`."""
    sub = create_subdependencia(session, dependencia.id, codigo=unique("S"), nombre=f"Dirección {unique()}")
    session.commit()
    return sub


@pytest.fixture
def tramite_data(subdependencia):
    """Datos válidos para crear un trámite activo."""
    return {
        "codigo_unico": unique("T-"),
        "nombre": f"Licencia de construcción {unique()}",
        "descripcion": DESCRIPCION_LARGA,
        "tiempo_respuesta": "15 días hábiles",
        "tiene_pago": True,
        "requisitos": ["Documento de identidad", "Planos"],
        "instructivo": ["Radicar solicitud", "Pagar expensas"],
        "modalidad": "presencial",
        "subdependencia_id": subdependencia.id,
    }


@pytest.fixture
def opa_data(subdependencia):
    """Datos válidos para crear una OPA activa."""
    return {
        "codigo_opa": unique("OPA-"),
        "nombre": f"Permiso de evento {unique()}",
        "descripcion": DESCRIPCION_LARGA,
        "tiempo_respuesta": "10 días hábiles",
        "tiene_pago": False,
        "requisitos": ["Solicitud escrita"],
        "subdependencia_id": subdependencia.id,
    }
