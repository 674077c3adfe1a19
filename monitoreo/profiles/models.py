from datetime import datetime
from typing import Dict, Any, Optional

import bcrypt

from monitoreo.shared.constants import ROLES, PROFILE_STATUS
from monitoreo.shared.logging import log_warning
from monitoreo.shared.utils import normalize_text
from monitoreo.shared.validators import new_id
from monitoreo.timeline.dates import utc_now

# Campos que nunca salen en una respuesta
PRIVATE_FIELDS = ("password",)


def build_full_name(first_name, last_name) -> str:
    return f"{normalize_text(first_name)} {normalize_text(last_name)}".strip()


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verifica si la contraseña en texto plano coincide con el hash almacenado"""
    if not plain_password or not hashed_password:
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError as e:
        # Hash con formato distinto a bcrypt
        log_warning(f"Hash de contraseña inválido: {str(e)}", "monitoreo.profiles")
        return False


def public_profile(document: Optional[Dict]) -> Optional[Dict]:
    if document is None:
        return None
    return {key: value for key, value in document.items() if key not in PRIVATE_FIELDS}


class Profile:
    """Cuenta de la aplicación: administrador o especialista."""
    def __init__(
        self,
        email: str,
        first_name: str,
        last_name: str,
        password_hash: Optional[str] = None,
        role: str = ROLES["USER"],
        status: str = PROFILE_STATUS["ACTIVE"],
        doc_type: Optional[str] = None,
        doc_number: Optional[str] = None,
        full_name: Optional[str] = None,
        avatar_url: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
        _id: Optional[str] = None
    ):
        self._id = _id or new_id()
        self.email = normalize_text(email).lower()
        self.first_name = normalize_text(first_name)
        self.last_name = normalize_text(last_name)
        self.full_name = normalize_text(full_name) or build_full_name(first_name, last_name)
        self.password = password_hash
        self.role = role or ROLES["USER"]
        self.status = status or PROFILE_STATUS["ACTIVE"]
        self.doc_type = normalize_text(doc_type).upper() or None
        self.doc_number = normalize_text(doc_number) or None
        self.avatar_url = avatar_url or None
        self.created_at = created_at or utc_now()
        self.updated_at = updated_at or utc_now()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "_id": self._id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "password": self.password,
            "role": self.role,
            "status": self.status,
            "doc_type": self.doc_type,
            "doc_number": self.doc_number,
            "avatar_url": self.avatar_url,
            "created_at": self.created_at,
            "updated_at": self.updated_at
        }
