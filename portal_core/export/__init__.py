from __future__ import annotations

from .faqs import export_faqs, import_faqs, parse_faqs
from .services import export_services, import_services, parse_services
from .tabular import CONFLICT_STRATEGIES, FORMATS, ImportResult

__all__ = [
    "CONFLICT_STRATEGIES",
    "FORMATS",
    "ImportResult",
    "export_faqs",
    "export_services",
    "import_faqs",
    "import_services",
    "parse_faqs",
    "parse_services",
]
