from typing import Dict, List, Optional

import requests
from flask import current_app
from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from monitoreo.shared.constants import COLLECTIONS, TEMPLATE_STATUS
from monitoreo.shared.exceptions import AppException, ExternalServiceException
from monitoreo.shared.logging import log_error, log_info
from monitoreo.shared.standardization import BaseService
from monitoreo.shared.utils import serialize_document
from monitoreo.shared.validators import new_id
from monitoreo.events.models import MonitoringEvent
from monitoreo.templates.models import MonitoringTemplate
from monitoreo.timeline.dates import utc_now
from monitoreo.timeline.models import AvailabilityStatus, EventStatus, EventType
from . import intents
from .models import AssistantLog

SYSTEM_PROMPT = " ".join([
    "Te llamas Yoryi, eres el asistente virtual de AGEBRE para un sistema de monitoreos educativos.",
    "Responde en espanol claro, formal y breve, pensado para personas mayores.",
    "Formato obligatorio:",
    '1) Titulo corto en la primera linea (ej: "Monitoreos por vencer").',
    '2) Lista con guiones y prefijo simple: "- Item".',
    "3) Cada item en una linea separada (siempre con salto de linea).",
    "4) Si hay fechas, usa dd/mm/yyyy.",
    "5) Evita parrafos largos.",
    "6) No uses emojis innecesarios.",
    '7) Si no hay datos: "No se encontraron resultados."',
    "8) Nunca inventes nombres de monitoreos, fechas o documentos; usa solo datos del contexto disponible.",
])

MISSING_TITLE_REPLY = (
    'Crear monitoreo\n- [!] Falta el titulo.\n- [OK] Ejemplo: "Crear monitoreo: Evaluacion de lectura"'
)
NOT_ADMIN_REPLY = "Permisos\n- [!] Solo un administrador puede crear monitoreos."
MALFORMED_CREATE_REPLY = (
    'No se creo ningun monitoreo.\n- [!] Usa el formato exacto: "Crear monitoreo: Nombre del monitoreo".\n'
    '- [OK] Ejemplo: "Crear monitoreo: Evaluacion de lectura".'
)
GREETING_REPLY = (
    "Asistente AGEBRE\nHola, estoy listo para ayudarte.\n"
    "Puedes pedirme: monitoreos activos, por vencer, hoy o crear monitoreo."
)
EMPTY_COMPLETION = "Sin respuesta."


class AssistantService(BaseService):
    """
    Asistente de chat.

    Resuelve localmente los comandos de creación, las consultas de
    monitoreos y los saludos; el resto se envía al proveedor de chat
    configurado (API compatible con chat completions).
    """
    def __init__(self):
        super().__init__(collection_name=COLLECTIONS["ASSISTANT_LOGS"])

    @property
    def templates(self):
        return self.db[COLLECTIONS["TEMPLATES"]]

    @property
    def events(self):
        return self.db[COLLECTIONS["EVENTS"]]

    def data_query(self, query: str, now=None) -> Dict:
        intent = intents.detect_data_intent(query)
        published = self.templates.find({"status": TEMPLATE_STATUS["PUBLISHED"]}).sort("updated_at", DESCENDING)
        items = intents.query_templates(intent, published, now)
        return {"intent": intent, "summary": intents.build_summary(intent, items), "items": items}

    def log_exchange(self, user_id: Optional[str], message: str, reply: str) -> None:
        entries = [
            AssistantLog(user_id, "user", message).to_dict(),
            AssistantLog(user_id, "assistant", reply).to_dict(),
        ]
        try:
            self.collection.insert_many(entries)
        except PyMongoError as e:
            # La respuesta ya se generó; el registro no debe impedir entregarla
            log_error("No se pudo registrar la conversación del asistente", e, "monitoreo.assistant")

    def list_logs(self, user_id: Optional[str] = None, limit: int = 100) -> List[Dict]:
        query = {"user_id": user_id} if user_id else {}
        return [serialize_document(doc) for doc in self.list_all(query, limit=limit, sort=[("created_at", DESCENDING)])]

    def create_draft_monitoring(self, title: str, user: Dict) -> Dict:
        """
        Borrador de monitoreo creado desde el chat: evento de monitoreo y
        plantilla en borrador con el mismo id, ambos con inicio = fin = ahora.
        """
        now = utc_now()
        monitoring_id = new_id()
        event = MonitoringEvent(
            _id=monitoring_id,
            title=title,
            event_type=EventType.MONITORING.value,
            start_at=now,
            end_at=now,
            status=EventStatus.ACTIVE.value,
            created_by=user.get("id")
        )
        template = MonitoringTemplate(
            _id=monitoring_id,
            title=title,
            status=TEMPLATE_STATUS["DRAFT"],
            sections=[],
            availability={"status": AvailabilityStatus.ACTIVE.value, "startAt": now, "endAt": now},
            created_by=user.get("id")
        )
        try:
            self.events.insert_one(event.to_dict())
            self.templates.insert_one(template.to_dict())
        except PyMongoError as e:
            log_error("No se pudo crear el monitoreo desde el asistente", e, "monitoreo.assistant")
            raise AppException("No se pudo crear el monitoreo.", AppException.INTERNAL_ERROR)
        log_info(f"Monitoreo {monitoring_id} creado desde el asistente", "monitoreo.assistant")
        return {"id": monitoring_id, "created_at": now}

    def complete(self, message: str, history: List[Dict], context: str = "") -> str:
        """Llama al endpoint de chat completions y devuelve el texto generado."""
        config = current_app.config
        api_key = config.get("CHAT_API_KEY")
        if not api_key:
            raise ExternalServiceException("El asistente no está configurado (falta CHAT_API_KEY).")

        messages = [{"role": "system", "content": f"{SYSTEM_PROMPT}\n\n{context}" if context else SYSTEM_PROMPT}]
        messages.extend(history)
        messages.append({"role": "user", "content": message})

        try:
            response = requests.post(
                config.get("CHAT_API_URL"),
                headers={"Content-Type": "application/json", "Authorization": f"Bearer {api_key}"},
                json={"model": config.get("CHAT_MODEL"), "messages": messages, "temperature": 0.7},
                timeout=config.get("CHAT_TIMEOUT", 30)
            )
        except requests.RequestException as e:
            log_error("Error de conexión con el proveedor de chat", e, "monitoreo.assistant")
            raise ExternalServiceException("No se pudo contactar al proveedor de chat.")

        if not 200 <= response.status_code < 300:
            log_error(f"Proveedor de chat respondió {response.status_code}: {response.text}", module="monitoreo.assistant")
            raise ExternalServiceException(
                "El proveedor de chat devolvió un error.", {"status": response.status_code}
            )
        try:
            data = response.json()
        except ValueError as e:
            log_error("Respuesta no JSON del proveedor de chat", e, "monitoreo.assistant")
            raise ExternalServiceException("Respuesta inválida del proveedor de chat.")
        choices = data.get("choices") or [{}]
        return ((choices[0].get("message") or {}).get("content") or "").strip()

    def chat(self, message: str, history: List[Dict], user: Dict, now=None) -> Dict:
        """
        Responde un mensaje del chat.

        Returns:
            Diccionario con `reply` y `kind` (create, create_malformed,
            data_query, greeting o chat)
        """
        kind = intents.classify_message(message)

        if kind == intents.CREATE:
            title = intents.create_title(message)
            if not title:
                return {"reply": MISSING_TITLE_REPLY, "kind": kind}
            if not user.get("is_admin"):
                return {"reply": NOT_ADMIN_REPLY, "kind": kind}
            created = self.create_draft_monitoring(title, user)
            reply = (
                f"Monitoreo creado\n- [OK] Titulo: {title}\n- [OK] Estado: Borrador\n"
                "- [OK] Ruta: Elegir monitoreo > Ver borradores"
            )
            return {"reply": reply, "kind": kind, "id": created["id"]}

        if kind == intents.CREATE_MALFORMED:
            return {"reply": MALFORMED_CREATE_REPLY, "kind": kind}

        if kind == intents.DATA_QUERY:
            result = self.data_query(message, now)
            reply = intents.build_reply(result["intent"], result["items"])
        elif kind == intents.GREETING:
            reply = GREETING_REPLY
        else:
            context = ""
            if intents.needs_system_context(message):
                context = f"Contexto del sistema:\n{self.data_query(message, now)['summary']}"
            reply = self.complete(message, history, context) or EMPTY_COMPLETION

        self.log_exchange(user.get("id"), message, reply)
        return {"reply": reply, "kind": kind}
