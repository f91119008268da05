from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

import numpy as np
from openai import OpenAI

from .config import Settings, get_settings
from .prompts import FALLBACK_RESPONSE, UNCERTAINTY_PHRASES, get_chat_system_prompt
from .text_normalization import normalize_for_search

logger = logging.getLogger(__name__)

BASE_CONFIDENCE = 0.8
MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 1.0
SHORT_RESPONSE_LENGTH = 50


@dataclass
class EmbeddingResult:
    embedding: List[float]
    tokens: int


@dataclass
class ChatResponse:
    content: str
    confidence: float
    sources: List[str] = field(default_factory=list)
    tokens: int = 0


def is_simulated_mode(settings: Settings | None = None) -> bool:
    """
    True si no hay API key real: vacía o de desarrollo ("placeholder", "test").

    En modo simulado no se llama a OpenAI: los embeddings se calculan
    localmente y las respuestas del chat se arman con el contexto encontrado.
    """
    settings = settings or get_settings()
    key = settings.openai_api_key or ""
    return not key or "placeholder" in key or "test" in key


def get_client() -> OpenAI:
    settings = get_settings()
    if not settings.openai_api_key:
        raise RuntimeError("OPENAI_API_KEY no está configurada en el .env")
    return OpenAI(api_key=settings.openai_api_key)


def validate_llm_config() -> tuple[bool, list[str]]:
    """Revisa que la configuración de OpenAI esté completa."""
    settings = get_settings()
    errors = []
    if not settings.openai_api_key:
        errors.append("OPENAI_API_KEY no está configurada")
    if not settings.openai_model_text:
        errors.append("OPENAI_MODEL_TEXT no está configurado")
    if not settings.openai_embedding_model:
        errors.append("OPENAI_EMBEDDING_MODEL no está configurado")
    return (not errors, errors)


def estimate_tokens(text: str) -> int:
    """Aproximación de tokens (~4 caracteres por token)."""
    return max(1, -(-len(text or "") // 4))


def simulated_embedding(text: str, dimensions: int) -> List[float]:
    """
    Embedding determinista de "bolsa de palabras con hashing".

    Cada palabra normalizada suma en una posición derivada de su hash, así
    textos que comparten palabras tienen similitud coseno alta.
    """
    vector = np.zeros(dimensions, dtype=np.float64)
    for token in normalize_for_search(text).split():
        digest = hashlib.sha256(token.encode("utf-8")).digest()
        index = int.from_bytes(digest[:4], "big") % dimensions
        sign = 1.0 if digest[4] % 2 == 0 else -1.0
        vector[index] += sign
    norm = np.linalg.norm(vector)
    if norm > 0:
        vector = vector / norm
    return vector.tolist()


def generate_embedding(text: str) -> EmbeddingResult:
    """
    Genera el embedding de un texto.

    Raises:
        RuntimeError: Si OpenAI falla (el error original se loguea)
    """
    settings = get_settings()
    clean = (text or "").replace("\n", " ").strip()

    if is_simulated_mode(settings):
        return EmbeddingResult(
            embedding=simulated_embedding(clean, settings.embedding_dimensions),
            tokens=estimate_tokens(clean),
        )

    client = get_client()
    try:
        response = client.embeddings.create(
            model=settings.openai_embedding_model,
            input=clean,
            encoding_format="float",
        )
    except Exception as e:
        logger.exception("Error generando embedding")
        raise RuntimeError("No se pudo generar el embedding") from e

    return EmbeddingResult(
        embedding=list(response.data[0].embedding),
        tokens=response.usage.total_tokens,
    )


def calculate_confidence(content: str, relevant_count: int) -> float:
    """
    Confianza heurística de una respuesta.

    Base 0.8; -0.2 sin contexto; -0.1 si la respuesta es muy corta;
    -0.2 si contiene frases de incertidumbre. Resultado acotado a [0.1, 1.0].
    """
    confidence = BASE_CONFIDENCE
    if relevant_count == 0:
        confidence -= 0.2
    if len(content or "") < SHORT_RESPONSE_LENGTH:
        confidence -= 0.1
    lowered = (content or "").lower()
    if any(phrase in lowered for phrase in UNCERTAINTY_PHRASES):
        confidence -= 0.2
    return round(max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, confidence)), 2)


def build_context_text(relevant_content: Sequence[Any]) -> str:
    return "\n\n".join(f"{item.title}: {item.content}" for item in relevant_content)


def _simulated_response(messages: Sequence[Dict[str, str]], relevant_content: Sequence[Any]) -> ChatResponse:
    settings = get_settings()
    last_user = next((m["content"] for m in reversed(messages) if m.get("role") == "user"), "")
    normalized = normalize_for_search(last_user)

    if relevant_content:
        best = relevant_content[0]
        lines = ["Encontré esta información sobre tu consulta:", "", f"**{best.title}**", best.content]
        others = [item.title for item in relevant_content[1:]]
        if others:
            lines += ["", "También puede interesarte:"] + [f"- {title}" for title in others]
        content = "\n".join(lines)
    elif "horario" in normalized or "atencion" in normalized:
        content = (
            f"**Horarios de atención de la Alcaldía de {settings.municipio_nombre}:**\n"
            "- Lunes a Viernes: 8:00 AM - 5:00 PM\n"
            "- Sábados: 8:00 AM - 12:00 PM\n\n"
            "Para temas específicos te recomiendo contactar directamente a la dependencia."
        )
    else:
        content = (
            f"¡Hola! Soy el asistente virtual de la Alcaldía de {settings.municipio_nombre}.\n\n"
            "Puedo ayudarte con información sobre trámites y servicios municipales, "
            "pagos, horarios de atención y preguntas frecuentes. "
            "No tengo información específica sobre tu consulta; te recomiendo contactar a un funcionario."
        )

    return ChatResponse(
        content=content,
        confidence=calculate_confidence(content, len(relevant_content)),
        sources=[item.title for item in relevant_content],
        tokens=estimate_tokens(content),
    )


def generate_chat_response(
    messages: Sequence[Dict[str, str]],
    relevant_content: Sequence[Any] = (),
) -> ChatResponse:
    """
    Genera la respuesta del asistente.

    Args:
        messages: Historial como dicts `{"role": "user"|"assistant", "content": str}`
        relevant_content: Resultados de búsqueda (objetos con `title` y `content`)

    Returns:
        ChatResponse. Si OpenAI falla se devuelve un mensaje de contingencia
        con confianza 0.1 (no se propaga la excepción).
    """
    settings = get_settings()
    relevant_content = list(relevant_content)

    if is_simulated_mode(settings):
        logger.info("🤖 Usando respuesta simulada (sin OPENAI_API_KEY real)")
        return _simulated_response(messages, relevant_content)

    system_prompt = get_chat_system_prompt(
        build_context_text(relevant_content),
        municipio=settings.municipio_nombre,
    )

    try:
        client = get_client()
        completion = client.chat.completions.create(
            model=settings.openai_model_text,
            messages=[
                {"role": "system", "content": system_prompt},
                *({"role": m["role"], "content": m["content"]} for m in messages),
            ],
            max_tokens=settings.openai_max_tokens,
            temperature=settings.openai_temperature,
            presence_penalty=0.1,
            frequency_penalty=0.1,
        )
    except Exception:
        logger.exception("Error generando respuesta del chat")
        return ChatResponse(content=FALLBACK_RESPONSE, confidence=MIN_CONFIDENCE, sources=[], tokens=0)

    content = completion.choices[0].message.content or "Lo siento, no pude generar una respuesta."
    tokens = completion.usage.total_tokens if completion.usage else 0
    return ChatResponse(
        content=content,
        confidence=calculate_confidence(content, len(relevant_content)),
        sources=[item.title for item in relevant_content],
        tokens=tokens,
    )
