from typing import Dict, List, Optional
import math

from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError

from monitoreo.shared.constants import COLLECTIONS, INSTITUTION_STATUS, PAGINATION
from monitoreo.shared.exceptions import AppException, ValidationException
from monitoreo.shared.logging import log_info
from monitoreo.shared.standardization import BaseService
from monitoreo.shared.utils import serialize_document, normalize_text
from monitoreo.shared.validators import is_numeric_code
from monitoreo.timeline.dates import utc_now
from .models import Institution, normalize_code

REQUIRED_FIELDS = {
    "nombre_ie": "El nombre de la IE es obligatorio.",
    "cod_local": "El codigo local es obligatorio.",
    "cod_modular": "El codigo modular es obligatorio.",
    "nivel": "Selecciona un nivel.",
    "modalidad": "Selecciona una modalidad.",
    "distrito": "El distrito es obligatorio.",
    "rei": "La REI es obligatoria.",
    "nombre_director": "El nombre del director(a) es obligatorio.",
}

SEARCH_FIELDS = ("nombre_ie", "cod_local", "cod_modular", "nombre_director", "distrito", "rei")


def validate_institution(data: Dict, others: List[Dict]) -> None:
    """
    Todos los campos son obligatorios; los códigos deben ser numéricos (sin
    contar espacios) y no repetirse en otra institución.
    """
    errors = {}
    for field, message in REQUIRED_FIELDS.items():
        if not normalize_text(data.get(field)):
            errors[field] = message

    for field, label in (("cod_local", "local"), ("cod_modular", "modular")):
        value = data.get(field)
        if normalize_text(value) and not is_numeric_code(value):
            errors[field] = f"El codigo {label} debe ser numerico."
            continue
        code = normalize_code(value)
        if code and any(normalize_code(item.get(field)) == code for item in others):
            errors[field] = f"Este codigo {label} ya esta registrado."

    if errors:
        raise ValidationException("Revisa los campos obligatorios y corrige los errores marcados.", errors)


def matches_search(institution: Dict, term: str) -> bool:
    term = normalize_text(term).lower()
    if not term:
        return True
    haystack = " ".join(str(institution.get(field) or "").lower() for field in SEARCH_FIELDS)
    return term in haystack


def summarize(institutions: List[Dict]) -> Dict[str, int]:
    summary = {"total": len(institutions), "active": 0, "inactive": 0}
    for item in institutions:
        if item.get("estado") == INSTITUTION_STATUS["INACTIVE"]:
            summary["inactive"] += 1
        else:
            summary["active"] += 1
    return summary


class InstitutionService(BaseService):
    def __init__(self):
        super().__init__(collection_name=COLLECTIONS["INSTITUTIONS"])

    def save_institution(self, data: Dict, user: Dict) -> Dict:
        """Crea o actualiza una institución (el id en `data` indica edición)."""
        institution_id = data.get("id")
        existing = self.get_raw(institution_id) if institution_id else None
        if institution_id and not existing:
            raise AppException("Institución no encontrada", AppException.NOT_FOUND)

        others = [item for item in self.list_all({}) if item["_id"] != institution_id]
        validate_institution(data, others)

        institution = Institution(
            _id=institution_id,
            nombre_ie=data["nombre_ie"],
            cod_local=data["cod_local"],
            cod_modular=data["cod_modular"],
            nivel=data["nivel"],
            modalidad=data["modalidad"],
            distrito=data["distrito"],
            rei=data["rei"],
            nombre_director=data["nombre_director"],
            estado=data.get("estado") or (existing or {}).get("estado"),
            created_by=(existing or {}).get("created_by") or user.get("id"),
            created_at=(existing or {}).get("created_at")
        )
        document = institution.to_dict()
        try:
            self.collection.replace_one({"_id": institution._id}, document, upsert=True)
        except DuplicateKeyError as e:
            # El índice único cubre la carrera entre dos guardados simultáneos
            label = "codigo local" if "cod_local" in str(e) else "codigo modular"
            raise AppException(f"Ya existe una institucion con ese {label}.", AppException.CONFLICT)
        log_info(f"Institución {institution._id} guardada", "monitoreo.institutions")
        return serialize_document(document)

    def set_estado(self, institution_id: str, estado: str) -> Dict:
        """Activa o desactiva una institución; eliminar es desactivar."""
        if estado not in INSTITUTION_STATUS.values():
            raise ValidationException("Estado inválido", {"estado": "Debe ser active o inactive."})
        if not self.update(institution_id, {"estado": estado, "updated_at": utc_now()}):
            raise AppException("Institución no encontrada", AppException.NOT_FOUND)
        return self.get_by_id(institution_id)

    def get_institution(self, institution_id: str) -> Dict:
        institution = self.get_by_id(institution_id)
        if not institution:
            raise AppException("Institución no encontrada", AppException.NOT_FOUND)
        return institution

    def list_institutions(self, search: Optional[str] = None, estado: str = "all",
                          page: int = PAGINATION["DEFAULT_PAGE"], filters: Optional[Dict] = None) -> Dict:
        """
        Lista paginada (10 por página) ordenada por nombre.

        Args:
            search: Texto buscado en nombre, códigos, director, distrito y REI
            estado: active, inactive o all
            page: Página pedida; se ajusta al rango disponible
            filters: Igualdades opcionales por nivel, modalidad, distrito o rei
        """
        items = self.list_all({}, sort=[("nombre_ie", ASCENDING)])
        filters = {key: value for key, value in (filters or {}).items() if value not in (None, "", "all")}
        filtered = [
            item for item in items
            if matches_search(item, search)
            and (estado in (None, "", "all") or item.get("estado") == estado)
            and all(item.get(key) == value for key, value in filters.items())
        ]

        per_page = PAGINATION["DEFAULT_PER_PAGE"]
        total_pages = max(1, math.ceil(len(filtered) / per_page))
        page = min(max(1, page or 1), total_pages)
        start = (page - 1) * per_page
        return {
            "items": [serialize_document(item) for item in filtered[start:start + per_page]],
            "page": page,
            "per_page": per_page,
            "total": len(filtered),
            "total_pages": total_pages,
            "summary": summarize(items)
        }

    def summary(self) -> Dict[str, int]:
        return summarize(self.list_all({}))
