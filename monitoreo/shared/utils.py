"""
Utilidades generales para toda la aplicación.

IMPORTANTE: Para decoradores como handle_errors, auth_required, role_required y validate_json,
importar desde monitoreo.shared.decorators, NO desde este archivo.
"""

from datetime import datetime, date
from enum import Enum
from typing import Optional
import re
import unicodedata
from bson import ObjectId

__all__ = ['parse_date', 'serialize_document', 'ensure_json_serializable',
           'normalize_text', 'normalize_title', 'strip_accents', 'truncate_label']

def parse_date(date_string: str) -> Optional[str]:
    """Parsea diferentes formatos de fecha a formato estándar YYYY-MM-DD"""
    formats_to_try = [
        "%Y-%m-%d",
        "%d/%m/%Y",
        "%Y/%m/%d",
    ]

    for format_str in formats_to_try:
        try:
            date_obj = datetime.strptime(date_string, format_str)
            return date_obj.strftime("%Y-%m-%d")
        except (TypeError, ValueError):
            continue
    return None

def serialize_document(document: Optional[dict]) -> Optional[dict]:
    """Convierte un documento de MongoDB a la forma pública: `_id` pasa a `id`."""
    if document is None:
        return None
    result = dict(document)
    if "_id" in result:
        result["id"] = str(result.pop("_id"))
    return ensure_json_serializable(result)

def ensure_json_serializable(data):
    """Convierte ObjectId, fechas y enums para garantizar que el objeto sea JSON serializable"""
    if isinstance(data, list):
        return [ensure_json_serializable(item) for item in data]
    elif isinstance(data, tuple):
        return [ensure_json_serializable(item) for item in data]
    elif isinstance(data, dict):
        return {
            (key.isoformat() if isinstance(key, date) else str(key) if isinstance(key, ObjectId) else key):
                ensure_json_serializable(value)
            for key, value in data.items()
        }
    elif isinstance(data, ObjectId):
        return str(data)
    elif isinstance(data, (datetime, date)):
        return data.isoformat()
    elif isinstance(data, Enum):
        return data.value
    else:
        return data

def normalize_text(value) -> str:
    return str(value or "").strip()

def normalize_title(value) -> str:
    """Clave de comparación de títulos (sin espacios extremos, en minúsculas)."""
    return normalize_text(value).lower()

def strip_accents(value: str) -> str:
    normalized = unicodedata.normalize("NFD", value or "")
    return "".join(ch for ch in normalized if unicodedata.category(ch) != "Mn")

def safe_file_token(value: str) -> str:
    """Texto apto para nombre de archivo: sin acentos ni símbolos, espacios como '_'."""
    cleaned = re.sub(r"[^a-zA-Z0-9\-_ ]", "", strip_accents(value)).strip()
    return re.sub(r"\s+", "_", cleaned)

def truncate_label(value, max_chars: int = 70) -> str:
    text = normalize_text(value)
    if len(text) <= max_chars:
        return text
    return f"{text[:max(1, max_chars - 1)].rstrip()}..."
