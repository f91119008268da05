"""
Tests del CLI de operación (`portal-ciudadano`).
"""

import json

from portal_core.cli import build_parser, main
from portal_core.db.database import get_db_session
from portal_core.db.faqs import list_faqs
from portal_core.db.helpers import create_dependencia

from conftest import unique


def test_build_parser_import_por_defecto_update():
    args = build_parser().parse_args(["import", "faqs", "faqs.csv"])
    assert args.conflict_strategy == "update"
    assert args.format is None


def test_import_y_export_faqs(tmp_path, capsys):
    with get_db_session() as session:
        dep = create_dependencia(session, codigo=unique("D"), nombre=f"Secretaría {unique()}")
        dep_id, dep_nombre = dep.id, dep.nombre

    token = unique("cli")
    source = tmp_path / "faqs.json"
    source.write_text(json.dumps([
        {"pregunta": f"¿Pregunta {token}?", "respuesta": "Respuesta", "dependencia_nombre": dep_nombre},
    ]), encoding="utf-8")

    assert main(["import", "faqs", str(source)]) == 0
    assert "1 creados" in capsys.readouterr().out

    with get_db_session() as session:
        assert list_faqs(session, query=token, dependencia_id=dep_id).total == 1

    output = tmp_path / "faqs.csv"
    assert main(["export", "faqs", "--format", "csv", "-o", str(output)]) == 0
    assert token in output.read_text(encoding="utf-8")


def test_import_archivo_inexistente(tmp_path, capsys):
    assert main(["import", "servicios", str(tmp_path / "no-existe.csv")]) == 1
    assert "No se encontró el archivo" in capsys.readouterr().out


def test_import_formato_no_soportado(tmp_path, capsys):
    source = tmp_path / "servicios.xml"
    source.write_text("<servicios/>", encoding="utf-8")
    assert main(["import", "servicios", str(source)]) == 1
    assert "Formato no soportado" in capsys.readouterr().out


def test_cleanup_sessions(capsys):
    assert main(["cleanup-sessions"]) == 0
    assert "Sesiones vencidas eliminadas" in capsys.readouterr().out
