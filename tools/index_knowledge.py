#!/usr/bin/env python3
"""
Script para (re)indexar la base de conocimiento del asistente virtual.

Genera embeddings de trámites, OPAs, FAQs, dependencias e información
general del municipio. Sin `OPENAI_API_KEY` usa embeddings simulados.

Ejecutar:
    python tools/index_knowledge.py [--force]
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from portal_core.chatbot.knowledge import index_knowledge
from portal_core.db.database import get_db_session, init_db
from portal_core.llm_client import validate_llm_config


def main():
    force = "--force" in sys.argv[1:]

    print("=" * 70)
    print("  INDEXAR BASE DE CONOCIMIENTO")
    print("=" * 70)
    print()

    ok, errors = validate_llm_config()
    if not ok:
        for error in errors:
            print(f"⚠️  {error}")
        print("   Se usarán embeddings simulados.")
        print()

    init_db()
    with get_db_session() as session:
        counts = index_knowledge(session, force=force)

    for key, value in counts.items():
        print(f"   - {key}: {value}")
    print()
    if counts.get("errors"):
        print("⚠️  Indexación completada con errores")
        sys.exit(1)
    print("✅ Indexación completada")


if __name__ == "__main__":
    main()
