from datetime import datetime
from typing import List, Optional, Dict, Any

from pydantic import BaseModel, Field

from monitoreo.shared.validators import new_id
from monitoreo.timeline.dates import utc_now


class ChatHistoryItem(BaseModel):
    """Mensaje previo de la conversación tal como lo guarda el cliente"""
    role: str = Field("user", description="user o assistant")
    text: str = Field("", description="Contenido del mensaje")

    def as_chat_message(self) -> Dict[str, str]:
        return {"role": "user" if self.role == "user" else "assistant", "content": self.text}


class ChatRequest(BaseModel):
    """Request model del endpoint de chat"""
    message: str = Field(..., min_length=1, description="Mensaje del usuario")
    history: List[ChatHistoryItem] = Field(default_factory=list, description="Historial previo")


class DataQueryRequest(BaseModel):
    query: str = Field("", description="Consulta en lenguaje natural sobre monitoreos")


class AssistantLog:
    def __init__(self, user_id: Optional[str], role: str, message: str, source: str = "chat",
                 created_at: Optional[datetime] = None, _id: Optional[str] = None):
        self._id = _id or new_id()
        self.user_id = user_id
        self.role = role
        self.message = message
        self.source = source
        self.created_at = created_at or utc_now()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "_id": self._id,
            "user_id": self.user_id,
            "role": self.role,
            "message": self.message,
            "source": self.source,
            "created_at": self.created_at
        }
