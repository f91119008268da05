"""
Normalización de texto para búsquedas en español.

Las búsquedas del portal ignoran tildes, mayúsculas y puntuación:
"licencia de construcción" encuentra "LICENCIA DE CONSTRUCCION".
"""

from __future__ import annotations

import re
import unicodedata
from typing import Iterable

_DIACRITICS_RE = re.compile("[\u0300-\u036f]")
_PUNCT_RE = re.compile(r"[^\w\s]")
_SPACES_RE = re.compile(r"\s+")


def normalize_text(text: str | None) -> str:
    """Quita diacríticos (NFD) y pasa a minúsculas."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text)
    return _DIACRITICS_RE.sub("", decomposed).lower()


def normalize_for_search(text: str | None) -> str:
    """
    Normalización completa para comparar consultas contra contenido.

    Además de `normalize_text`: elimina puntuación, colapsa espacios y recorta.
    """
    normalized = normalize_text(text)
    normalized = _PUNCT_RE.sub(" ", normalized)
    return _SPACES_RE.sub(" ", normalized).strip()


def levenshtein_distance(a: str, b: str) -> int:
    """Distancia de edición clásica (inserción, borrado, sustitución)."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + cost,
            ))
        previous = current
    return previous[-1]


def _fuzzy_contains(query: str, target: str) -> bool:
    # Se compara contra ventanas del objetivo con la misma cantidad de palabras
    max_distance = int(len(query) * 0.2)
    query_words = query.split()
    target_words = target.split()
    size = max(len(query_words), 1)
    if len(target_words) < size:
        return levenshtein_distance(query, target) <= max_distance
    for start in range(len(target_words) - size + 1):
        window = " ".join(target_words[start:start + size])
        if levenshtein_distance(query, window) <= max_distance:
            return True
    return False


def search_matches(
    query: str,
    target: str | None,
    case_sensitive: bool = False,
    whole_word: bool = False,
    fuzzy: bool = False,
) -> bool:
    """
    Indica si `query` aparece en `target`.

    Args:
        query: Texto buscado
        target: Texto donde buscar
        case_sensitive: Si True, no se pasa a minúsculas (las tildes se ignoran igual)
        whole_word: Exige coincidencia de palabra completa
        fuzzy: Tolera errores de tipeo (distancia de edición <= 20% de la consulta)

    Returns:
        True si hay coincidencia. Una consulta vacía coincide siempre.
    """
    if not query:
        return True
    if not target:
        return False

    if case_sensitive:
        q = _DIACRITICS_RE.sub("", unicodedata.normalize("NFD", query)).strip()
        t = _DIACRITICS_RE.sub("", unicodedata.normalize("NFD", target))
    else:
        q = normalize_for_search(query)
        t = normalize_for_search(target)

    if not q:
        return True

    if whole_word:
        if re.search(rf"\b{re.escape(q)}\b", t):
            return True
    elif q in t:
        return True

    if fuzzy:
        return _fuzzy_contains(q, t)
    return False


def matches_all_terms(query: str | None, fields: Iterable[str | None]) -> bool:
    """
    True si todas las palabras de la consulta aparecen en alguno de los campos.

    Es el criterio que usan los listados y la búsqueda unificada.
    """
    normalized_query = normalize_for_search(query)
    if not normalized_query:
        return True
    haystack = " ".join(normalize_for_search(f) for f in fields if f)
    return all(term in haystack for term in normalized_query.split())


def slugify(text: str | None) -> str:
    """Slug simple en minúsculas y sin tildes ("Impuesto Predial" -> "impuesto-predial")."""
    return normalize_for_search(text).replace(" ", "-")
