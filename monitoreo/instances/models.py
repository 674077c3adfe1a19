from datetime import datetime
from typing import Dict, Optional, Any

from monitoreo.shared.constants import INSTANCE_STATUS
from monitoreo.shared.validators import new_id
from monitoreo.timeline.dates import utc_now

VALID_ANSWERS = ("SI", "NO", None)


def empty_form_state() -> Dict[str, Any]:
    """Estado inicial del formulario de una ficha."""
    return {
        "header": {
            "institucion": "",
            "docente": "",
            "grado": "",
            "area": "",
            "fecha": "",
        },
        "questions": {},
        "general": {"observacion": ""},
        "cierre": {"compromisos": "", "recomendaciones": ""},
        "firmas": {"docente": None, "monitor": None},
    }


def merge_form_state(current: Optional[Dict], incoming: Optional[Dict]) -> Dict[str, Any]:
    """Combina el estado guardado con el recibido, sección por sección."""
    merged = empty_form_state()
    for source in (current or {}, incoming or {}):
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key] = {**merged[key], **value}
            else:
                merged[key] = value
    return merged


class MonitoringInstance:
    """
    Ficha de monitoreo: copia llenada de una plantilla para una observación
    de un docente, a cargo de un especialista.
    """
    def __init__(
        self,
        template_id: str,
        created_by: str,
        status: str = INSTANCE_STATUS["IN_PROGRESS"],
        data: Optional[Dict] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
        _id: Optional[str] = None
    ):
        self._id = _id or new_id()
        self.template_id = template_id
        self.created_by = created_by
        self.status = status
        self.data = merge_form_state(None, data)
        self.created_at = created_at or utc_now()
        self.updated_at = updated_at or utc_now()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "_id": self._id,
            "template_id": self.template_id,
            "created_by": self.created_by,
            "status": self.status,
            "data": self.data,
            "created_at": self.created_at,
            "updated_at": self.updated_at
        }
