# portal_core/config.py
from dataclasses import dataclass
from functools import lru_cache
import os

from dotenv import load_dotenv

"""
portal_core.config
==================

Configuración centralizada del portal ciudadano.

Este módulo define:
- La estructura de configuración (`Settings`)
- La carga de variables desde entorno (.env)
- Un acceso único y cacheado (`get_settings`)

Convenciones
------------
- Las variables se cargan desde `.env` si existe.
- Los defaults están pensados para desarrollo local.
- Si falta la API key de OpenAI NO se falla acá: el cliente LLM pasa a
  modo simulado (ver `portal_core.llm_client`).

`DATABASE_URL` no vive acá: se resuelve en `portal_core.db.database`.
"""

load_dotenv()


@dataclass
class Settings:
    """
    Contenedor tipado de configuración global.

    Attributes
    ----------
    openai_api_key:
        API key de OpenAI. Vacía o con "placeholder"/"test" activa el modo simulado.
    openai_model_text:
        Modelo de chat usado por el asistente virtual.
    openai_embedding_model:
        Modelo de embeddings para la base de conocimiento.
    chat_similarity_threshold:
        Similitud coseno mínima para considerar relevante un contenido.
    chat_escalation_threshold:
        Por debajo de esta confianza la conversación se deriva a un funcionario.
    jwt_secret:
        Secreto HS256 con el que se firman los tokens que acepta la API.
    """

    # OpenAI
    openai_api_key: str
    openai_model_text: str = "gpt-4o-mini"
    openai_embedding_model: str = "text-embedding-3-small"
    openai_max_tokens: int = 1000
    openai_temperature: float = 0.7
    embedding_dimensions: int = 1536

    # Chatbot
    chat_similarity_threshold: float = 0.7
    chat_match_count: int = 5
    chat_escalation_threshold: float = 0.7
    chat_session_ttl_hours: int = 24
    chat_rate_limit_window_seconds: int = 900
    chat_rate_limit_max_requests: int = 50

    # Auth
    jwt_secret: str = "dev-secret"
    jwt_algorithm: str = "HS256"

    # Portal
    municipio_nombre: str = "Chía"


@lru_cache
def get_settings() -> Settings:
    """
    Devuelve una instancia única y cacheada de `Settings`.

    Variables de entorno utilizadas
    -------------------------------
    - OPENAI_API_KEY, OPENAI_MODEL_TEXT, OPENAI_EMBEDDING_MODEL
    - OPENAI_MAX_TOKENS, OPENAI_TEMPERATURE, EMBEDDING_DIMENSIONS
    - CHAT_SIMILARITY_THRESHOLD, CHAT_MATCH_COUNT, CHAT_ESCALATION_THRESHOLD
    - CHAT_SESSION_TTL_HOURS, CHAT_RATE_LIMIT_WINDOW_SECONDS, CHAT_RATE_LIMIT_MAX_REQUESTS
    - JWT_SECRET, JWT_ALGORITHM
    - MUNICIPIO_NOMBRE

    En tests se puede llamar `get_settings.cache_clear()` después de
    modificar el entorno.
    """
    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY", ""),
        openai_model_text=os.getenv("OPENAI_MODEL_TEXT", "gpt-4o-mini"),
        openai_embedding_model=os.getenv(
            "OPENAI_EMBEDDING_MODEL",
            "text-embedding-3-small"
        ),
        openai_max_tokens=int(os.getenv("OPENAI_MAX_TOKENS", "1000")),
        openai_temperature=float(os.getenv("OPENAI_TEMPERATURE", "0.7")),
        embedding_dimensions=int(os.getenv("EMBEDDING_DIMENSIONS", "1536")),

        chat_similarity_threshold=float(os.getenv("CHAT_SIMILARITY_THRESHOLD", "0.7")),
        chat_match_count=int(os.getenv("CHAT_MATCH_COUNT", "5")),
        chat_escalation_threshold=float(os.getenv("CHAT_ESCALATION_THRESHOLD", "0.7")),
        chat_session_ttl_hours=int(os.getenv("CHAT_SESSION_TTL_HOURS", "24")),
        chat_rate_limit_window_seconds=int(os.getenv("CHAT_RATE_LIMIT_WINDOW_SECONDS", "900")),
        chat_rate_limit_max_requests=int(os.getenv("CHAT_RATE_LIMIT_MAX_REQUESTS", "50")),

        jwt_secret=os.getenv("JWT_SECRET", "dev-secret"),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),

        municipio_nombre=os.getenv("MUNICIPIO_NOMBRE", "Chía"),
    )
