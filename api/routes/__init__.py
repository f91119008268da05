"""Rutas de la API."""

from . import (
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

__all__ = [
    "chat",
    "dependencias",
    "export_import",
    "faqs",
    "opas",
    "pqrs",
    "search",
    "servicios",
    "statistics",
    "subdependencias",
    "temas",
    "tramites",
]
