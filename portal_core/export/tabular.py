"""
Utilidades comunes del pipeline de importación/exportación.

Formato CSV
-----------
- Primera fila: encabezados.
- Listas (requisitos, instrucciones, palabras clave) unidas con `|`.
- Booleanos como `true` / `false`.
- Fechas en ISO 8601.

Formato JSON
------------
- Lista de objetos con las mismas claves que el CSV; las listas se exportan
  como arrays y los booleanos como booleanos.
"""

from __future__ import annotations

import csv
import io
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Sequence

FORMATS = ("csv", "json")
CONFLICT_STRATEGIES = ("update", "skip", "create")
LIST_SEPARATOR = "|"
IMPORT_BATCH_SIZE = 50

_TRUE_VALUES = {"true", "1", "si", "sí", "yes", "y", "verdadero", "x"}
_FALSE_VALUES = {"false", "0", "no", "n", "falso", ""}


@dataclass
class ImportResult:
    """Resumen de una importación."""

    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def message(self) -> str:
        message = (
            f"Importación completada: {self.created} creados, "
            f"{self.updated} actualizados, {self.skipped} omitidos"
        )
        if self.errors:
            message += f". {len(self.errors)} errores encontrados."
        return message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": list(self.errors),
        }


def check_format(fmt: str) -> str:
    fmt = (fmt or "").lower()
    if fmt not in FORMATS:
        raise ValueError(f"Formato no soportado: {fmt}. Opciones: {', '.join(FORMATS)}")
    return fmt


def check_conflict_strategy(strategy: str) -> str:
    if strategy not in CONFLICT_STRATEGIES:
        raise ValueError(
            f"Estrategia de conflicto inválida: {strategy}. Opciones: {', '.join(CONFLICT_STRATEGIES)}"
        )
    return strategy


def join_list(values: Iterable[str] | None) -> str:
    return LIST_SEPARATOR.join(v for v in (values or []) if v)


def split_list(value: Any) -> list[str]:
    """Acepta una lista (JSON) o un texto separado por `|` (CSV)."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if v is not None and str(v).strip()]
    return [part.strip() for part in str(value).split(LIST_SEPARATOR) if part.strip()]


def format_bool(value: Any) -> str:
    return "true" if value else "false"


def parse_bool(value: Any, default: bool = False) -> bool:
    """
    Interpreta booleanos de CSV/JSON ("true", "sí", "1", ...).

    Raises:
        ValueError: Si el texto no es reconocible como booleano
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if not text:
        return default
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"Valor booleano inválido: {value}")


def format_datetime(value: datetime | None) -> str:
    return value.isoformat() if value else ""


def blank_to_none(value: Any) -> Any:
    """Texto recortado o None. Los números de JSON (`"codigo": 12345`) pasan a texto."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def non_text_errors(record: Dict[str, Any], fields: Sequence[str]) -> list[str]:
    """Errores para campos de texto que llegaron como objeto, lista o booleano."""
    return [
        f"El campo {name} debe ser texto"
        for name in fields
        if record.get(name) is not None and not isinstance(record[name], str)
    ]


def rows_to_csv(headers: Sequence[str], rows: Sequence[Dict[str, Any]]) -> str:
    """Serializa filas a CSV. Sin filas devuelve cadena vacía."""
    if not rows:
        return ""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(headers), extrasaction="ignore", lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow({key: "" if row.get(key) is None else row.get(key) for key in headers})
    return buffer.getvalue()


def csv_to_rows(text: str) -> list[Dict[str, str]]:
    """Lee un CSV con encabezados (tolera BOM y filas vacías)."""
    text = (text or "").lstrip("\ufeff")
    if not text.strip():
        return []
    reader = csv.DictReader(io.StringIO(text))
    rows = []
    for row in reader:
        if not any((v or "").strip() for v in row.values() if isinstance(v, str)):
            continue
        rows.append({(k or "").strip(): (v if v is not None else "") for k, v in row.items()})
    return rows


def rows_to_json(rows: Sequence[Dict[str, Any]]) -> str:
    return json.dumps(list(rows), ensure_ascii=False, indent=2)


def json_to_rows(text: str) -> list[Dict[str, Any]]:
    """
    Lee un JSON que debe ser una lista de objetos.

    Raises:
        ValueError: Si el JSON es inválido o no es una lista de objetos
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"JSON inválido: {e}") from e
    if not isinstance(data, list):
        raise ValueError("El JSON debe ser una lista de registros")
    if not all(isinstance(item, dict) for item in data):
        raise ValueError("Cada registro del JSON debe ser un objeto")
    return data


def batched(items: Sequence[Any], size: int = IMPORT_BATCH_SIZE) -> Iterator[Sequence[Any]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]
