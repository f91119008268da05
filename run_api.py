#!/usr/bin/env python3
"""
Script helper para ejecutar la API FastAPI.
Ejecuta desde la raíz del proyecto para asegurar que Python encuentre el módulo 'api'.
"""

import os
import sys
from pathlib import Path

# Asegurar que el directorio raíz esté en el PYTHONPATH
project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    reload = os.getenv("ENVIRONMENT", "development") == "development"
    print(f"🚀 Iniciando Portal Ciudadano API en http://localhost:{port}")
    print(f"📖 Documentación disponible en http://localhost:{port}/docs")
    try:
        uvicorn.run("api.main:app", host="0.0.0.0", port=port, reload=reload)
    except OSError as e:
        print(f"❌ Error al iniciar el servidor: {e}")
        sys.exit(1)
