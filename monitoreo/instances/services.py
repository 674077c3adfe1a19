from typing import Dict, List, Optional

from pymongo import DESCENDING

from monitoreo.shared.constants import COLLECTIONS, INSTANCE_STATUS, TEMPLATE_STATUS
from monitoreo.shared.exceptions import AppException, ValidationException, PermissionException
from monitoreo.shared.logging import log_info
from monitoreo.shared.standardization import BaseService
from monitoreo.shared.utils import serialize_document
from monitoreo.reports.services import report_row_state
from monitoreo.timeline.availability import resolve_status
from monitoreo.timeline.dates import utc_now
from monitoreo.timeline.models import TimelineStatus
from .models import MonitoringInstance, merge_form_state, VALID_ANSWERS


def validate_answers(data: Dict, template: Optional[Dict]) -> None:
    """
    Cada respuesta debe ser SI, NO o vacía, y el nivel (si viene) debe
    pertenecer a la escala de la plantilla.
    """
    errors = {}
    level_keys = {
        level.get("key") for level in ((template or {}).get("levels_config") or {}).get("levels", [])
    }
    for question_id, answer in ((data or {}).get("questions") or {}).items():
        if not isinstance(answer, dict):
            errors[f"questions.{question_id}"] = "Respuesta inválida."
            continue
        if answer.get("answer") not in VALID_ANSWERS:
            errors[f"questions.{question_id}.answer"] = "La respuesta debe ser SI, NO o vacía."
        level = answer.get("level")
        if level not in (None, "") and level_keys and level not in level_keys:
            errors[f"questions.{question_id}.level"] = "Nivel fuera de la escala de la plantilla."
    if errors:
        raise ValidationException("Revisa las respuestas de la ficha.", errors)


class InstanceService(BaseService):
    """
    Fichas de monitoreo.

    La regla de una sola ficha en progreso por (plantilla, especialista) se
    aplica consultando antes de crear; dos solicitudes simultáneas todavía
    pueden crear dos fichas.
    """
    def __init__(self):
        super().__init__(collection_name=COLLECTIONS["INSTANCES"])

    @property
    def templates(self):
        return self.db[COLLECTIONS["TEMPLATES"]]

    def _get_template(self, template_id: str) -> Optional[Dict]:
        return self.templates.find_one({"_id": template_id})

    def _get_owned(self, instance_id: str, user: Dict) -> Dict:
        instance = self.get_raw(instance_id)
        if not instance:
            raise AppException("Ficha no encontrada", AppException.NOT_FOUND)
        if not user.get("is_admin") and instance.get("created_by") != user.get("id"):
            raise PermissionException("Solo el autor de la ficha o un administrador puede modificarla.")
        return instance

    def get_or_create_in_progress(self, template_id: str, user: Dict, now=None) -> Dict:
        """
        Devuelve la ficha en progreso más reciente del especialista para la
        plantilla o crea una nueva con el formulario vacío.
        """
        existing = self.collection.find_one(
            {
                "template_id": template_id,
                "created_by": user.get("id"),
                "status": INSTANCE_STATUS["IN_PROGRESS"]
            },
            sort=[("updated_at", DESCENDING)]
        )
        if existing:
            return serialize_document(existing)

        template = self._get_template(template_id)
        if not template:
            raise AppException("Plantilla no encontrada", AppException.NOT_FOUND)
        if template.get("status") != TEMPLATE_STATUS["PUBLISHED"]:
            raise AppException("La plantilla aún no está publicada.", AppException.CONFLICT)
        if resolve_status(template.get("availability"), now) != TimelineStatus.ACTIVE:
            raise AppException("El monitoreo no está habilitado en este momento.", AppException.CONFLICT)

        instance = MonitoringInstance(template_id=template_id, created_by=user.get("id"))
        document = instance.to_dict()
        self.create(document)
        log_info(f"Ficha {document['_id']} creada para plantilla {template_id}", "monitoreo.instances")
        return serialize_document(document)

    def get_instance(self, instance_id: str, user: Dict) -> Dict:
        return serialize_document(self._get_owned(instance_id, user))

    def save_instance(self, instance_id: str, data: Dict, user: Dict) -> Dict:
        """Guarda el estado del formulario (solo el autor o un administrador)."""
        instance = self._get_owned(instance_id, user)
        validate_answers(data, self._get_template(instance.get("template_id")))
        updates = {
            "data": merge_form_state(instance.get("data"), data),
            "updated_at": utc_now()
        }
        self.update(instance_id, updates)
        instance.update(updates)
        return serialize_document(instance)

    def complete_instance(self, instance_id: str, user: Dict) -> Dict:
        instance = self._get_owned(instance_id, user)
        header = (instance.get("data") or {}).get("header") or {}
        if not str(header.get("docente") or "").strip():
            raise ValidationException(
                "Completa los datos del docente antes de finalizar.",
                {"header.docente": "El nombre del docente es obligatorio."}
            )
        updates = {"status": INSTANCE_STATUS["COMPLETED"], "updated_at": utc_now()}
        self.update(instance_id, updates)
        instance.update(updates)
        return serialize_document(instance)

    def delete_instance(self, instance_id: str, user: Dict, now=None) -> bool:
        """
        El autor puede eliminar su ficha salvo que el monitoreo esté vencido;
        un administrador puede eliminar cualquiera.
        """
        instance = self._get_owned(instance_id, user)
        if not user.get("is_admin"):
            template = self._get_template(instance.get("template_id"))
            if report_row_state(template, instance, now) == "expired":
                raise PermissionException("No puedes eliminar una ficha de un monitoreo vencido.")
        deleted = self.delete(instance_id)
        if deleted:
            log_info(f"Ficha {instance_id} eliminada por {user.get('id')}", "monitoreo.instances")
        return deleted

    def list_instances(self, user: Dict, template_id: Optional[str] = None) -> List[Dict]:
        """Los administradores ven todas las fichas; los especialistas, solo las suyas."""
        query = {} if user.get("is_admin") else {"created_by": user.get("id")}
        if template_id:
            query["template_id"] = template_id
        return [serialize_document(doc) for doc in self.list_all(query, sort=[("updated_at", DESCENDING)])]
