"""
portal_core.cli
===============

CLI de operación del portal (`portal-ciudadano <comando>`).

Comandos
--------
- init-db:           crea las tablas (idempotente).
- index-knowledge:   (re)indexa la base de conocimiento del asistente.
- export:            exporta servicios o FAQs a CSV/JSON.
- import:            importa servicios o FAQs desde CSV/JSON.
- cleanup-sessions:  elimina sesiones de chat vencidas.

Todos los comandos usan `DATABASE_URL` y `OPENAI_API_KEY` del entorno/.env.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .chatbot.assistant import cleanup_expired_sessions
from .chatbot.knowledge import index_knowledge
from .db.database import get_db_session, init_db
from .export import CONFLICT_STRATEGIES, FORMATS, export_faqs, export_services, import_faqs, import_services
from .export.faqs import parse_faqs
from .export.services import parse_services
from .llm_client import is_simulated_mode

logger = logging.getLogger(__name__)

ENTITIES = ("servicios", "faqs")


def _cmd_init_db(args: argparse.Namespace) -> int:
    init_db()
    print("✅ DB creada/verificada usando DATABASE_URL.")
    return 0


def _cmd_index_knowledge(args: argparse.Namespace) -> int:
    if is_simulated_mode():
        print("⚠️  OPENAI_API_KEY no configurada: se usan embeddings simulados")
    with get_db_session() as session:
        counts = index_knowledge(session, force=args.force)
    print("✅ Base de conocimiento indexada:")
    for key, value in counts.items():
        print(f"   - {key}: {value}")
    return 1 if counts.get("errors") else 0


def _cmd_export(args: argparse.Namespace) -> int:
    with get_db_session() as session:
        if args.entity == "servicios":
            content = export_services(session, args.format)
        else:
            content = export_faqs(session, args.format)

    if args.output:
        Path(args.output).write_text(content, encoding="utf-8")
        print(f"✅ Exportado a {args.output}")
    else:
        sys.stdout.write(content)
    return 0


def _cmd_import(args: argparse.Namespace) -> int:
    path = Path(args.file)
    if not path.exists():
        print(f"❌ No se encontró el archivo: {path}")
        return 1
    fmt = args.format or path.suffix.lstrip(".").lower()
    text = path.read_text(encoding="utf-8")

    with get_db_session() as session:
        if args.entity == "servicios":
            result = import_services(session, parse_services(text, fmt), args.conflict_strategy)
        else:
            result = import_faqs(session, parse_faqs(text, fmt), args.conflict_strategy)

    print(("✅ " if result.success else "⚠️  ") + result.message)
    for error in result.errors:
        print(f"   - {error}")
    return 0 if result.success else 1


def _cmd_cleanup_sessions(args: argparse.Namespace) -> int:
    with get_db_session() as session:
        removed = cleanup_expired_sessions(session)
    print(f"✅ Sesiones vencidas eliminadas: {removed}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="portal-ciudadano", description="Operación del portal ciudadano")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init-db", help="Crear tablas")
    p.set_defaults(func=_cmd_init_db)

    p = sub.add_parser("index-knowledge", help="Indexar base de conocimiento del asistente")
    p.add_argument("--force", action="store_true", help="Regenerar todos los embeddings")
    p.set_defaults(func=_cmd_index_knowledge)

    p = sub.add_parser("export", help="Exportar servicios o FAQs")
    p.add_argument("entity", choices=ENTITIES)
    p.add_argument("--format", choices=FORMATS, default="csv")
    p.add_argument("--output", "-o", help="Archivo de salida (por defecto stdout)")
    p.set_defaults(func=_cmd_export)

    p = sub.add_parser("import", help="Importar servicios o FAQs")
    p.add_argument("entity", choices=ENTITIES)
    p.add_argument("file")
    p.add_argument("--format", choices=FORMATS, help="Por defecto se deduce de la extensión")
    p.add_argument("--conflict-strategy", choices=CONFLICT_STRATEGIES, default="update")
    p.set_defaults(func=_cmd_import)

    p = sub.add_parser("cleanup-sessions", help="Eliminar sesiones de chat vencidas")
    p.set_defaults(func=_cmd_cleanup_sessions)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Punto de entrada del CLI. Devuelve el código de salida."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except ValueError as e:
        print(f"❌ {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
