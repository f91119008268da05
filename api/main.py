"""
API HTTP principal del portal ciudadano.

Esta aplicación FastAPI expone endpoints REST sobre `portal_core`: catálogo
de trámites y OPAs, FAQs, PQRS, búsqueda unificada, import/export y el
asistente virtual.

Uso:
    uvicorn api.main:app --reload --port 8000
"""

import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from portal_core.db.database import init_db
from portal_core.llm_client import is_simulated_mode, validate_llm_config

from .routes import (
    chat,
    dependencias,
    export_import,
    faqs,
    opas,
    pqrs,
    search,
    servicios,
    statistics,
    subdependencias,
    temas,
    tramites,
)

# Cargar variables de entorno
load_dotenv()

# Determinar ambiente
ENVIRONMENT = os.getenv("ENVIRONMENT", "local")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Configurar logging según ambiente
log_level = getattr(logging, LOG_LEVEL, logging.INFO)
logging.basicConfig(
    level=log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)
logger.info(f"🚀 Iniciando API en ambiente: {ENVIRONMENT}")

init_db()

llm_ok, llm_errors = validate_llm_config()
if not llm_ok:
    for error in llm_errors:
        logger.warning(f"⚠️  {error}. El asistente funcionará en modo simulado.")

app = FastAPI(
    title="Portal Ciudadano API",
    description="API del portal de servicios ciudadanos: trámites, OPAs, FAQs, PQRS y asistente virtual",
    version="0.1.0",
)

# CORS: configurar según ambiente
cors_origins_str = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:3001")
cors_origins = [origin.strip() for origin in cors_origins_str.split(",") if origin.strip()]

logger.info(f"🌐 CORS origins configurados: {cors_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Registrar rutas
app.include_router(dependencias.router)
app.include_router(subdependencias.router)
app.include_router(tramites.router)
app.include_router(opas.router)
app.include_router(faqs.router)
app.include_router(temas.router)
app.include_router(pqrs.router)
app.include_router(search.router)
app.include_router(servicios.router)
app.include_router(export_import.router)
app.include_router(chat.router)
app.include_router(statistics.router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "portal-ciudadano-api"}


@app.get("/health")
async def health():
    """Health check detallado."""
    return {
        "status": "ok",
        "service": "portal-ciudadano-api",
        "version": "0.1.0",
        "environment": ENVIRONMENT,
        "llm_mode": "simulado" if is_simulated_mode() else "openai",
    }
