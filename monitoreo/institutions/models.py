from datetime import datetime
from typing import Dict, Any, Optional
import re

from monitoreo.shared.constants import INSTITUTION_STATUS
from monitoreo.shared.utils import normalize_text
from monitoreo.shared.validators import new_id
from monitoreo.timeline.dates import utc_now


def normalize_code(value) -> str:
    return re.sub(r"\s+", "", normalize_text(value))


class Institution:
    """Institución educativa (IE) registrada en el padrón."""
    def __init__(
        self,
        nombre_ie: str,
        cod_local: str,
        cod_modular: str,
        nivel: str,
        modalidad: str,
        distrito: str,
        rei: str,
        nombre_director: str,
        estado: str = INSTITUTION_STATUS["ACTIVE"],
        created_by: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
        _id: Optional[str] = None
    ):
        self._id = _id or new_id()
        self.nombre_ie = normalize_text(nombre_ie)
        self.cod_local = normalize_code(cod_local)
        self.cod_modular = normalize_code(cod_modular)
        self.nivel = nivel
        self.modalidad = modalidad
        self.distrito = normalize_text(distrito)
        self.rei = normalize_text(rei)
        self.nombre_director = normalize_text(nombre_director)
        self.estado = estado or INSTITUTION_STATUS["ACTIVE"]
        self.created_by = created_by
        self.created_at = created_at or utc_now()
        self.updated_at = updated_at or utc_now()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "_id": self._id,
            "nombre_ie": self.nombre_ie,
            "cod_local": self.cod_local,
            "cod_modular": self.cod_modular,
            "nivel": self.nivel,
            "modalidad": self.modalidad,
            "distrito": self.distrito,
            "rei": self.rei,
            "nombre_director": self.nombre_director,
            "estado": self.estado,
            "created_by": self.created_by,
            "created_at": self.created_at,
            "updated_at": self.updated_at
        }
