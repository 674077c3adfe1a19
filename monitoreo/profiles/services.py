from typing import Dict, List, Optional

from flask_jwt_extended import create_access_token
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError

from monitoreo.shared.constants import COLLECTIONS, ROLES, PROFILE_STATUS, SPECIALIST_ROLES
from monitoreo.shared.exceptions import AppException, ValidationException, PermissionException
from monitoreo.shared.logging import log_info, log_warning
from monitoreo.shared.standardization import BaseService
from monitoreo.shared.utils import serialize_document, normalize_text
from monitoreo.shared.validators import validate_email
from monitoreo.timeline.dates import utc_now
from .models import Profile, build_full_name, hash_password, verify_password, public_profile

EDITABLE_OWN_FIELDS = ("first_name", "last_name", "full_name", "avatar_url")


class ProfileService(BaseService):
    def __init__(self):
        super().__init__(collection_name=COLLECTIONS["PROFILES"])

    def _serialize(self, document: Optional[Dict]) -> Optional[Dict]:
        return serialize_document(public_profile(document))

    def _require_admin(self, user: Dict) -> None:
        if not user.get("is_admin"):
            raise PermissionException()

    def login(self, email: str, password: str) -> Dict:
        """
        Autentica por correo y contraseña y emite el token de acceso.

        Returns:
            Diccionario con `token` y `user`

        Raises:
            AppException: 401 si las credenciales no coinciden, 403 si la
            cuenta está desactivada
        """
        profile = self.collection.find_one({"email": normalize_text(email).lower()})
        if not profile or not verify_password(password, profile.get("password")):
            log_warning(f"Intento de inicio de sesión fallido para {email}", "monitoreo.profiles")
            raise AppException("Credenciales inválidas", AppException.UNAUTHORIZED)
        if profile.get("status") != PROFILE_STATUS["ACTIVE"]:
            raise AppException("Tu cuenta está desactivada. Contacta al administrador.", AppException.FORBIDDEN)

        claims = {"role": profile.get("role") or ROLES["USER"], "email": profile.get("email")}
        token = create_access_token(identity=str(profile["_id"]), additional_claims=claims)
        log_info(f"Inicio de sesión de {profile['_id']}", "monitoreo.profiles")
        return {"token": token, "user": self._serialize(profile)}

    def lookup_email(self, doc_type: str, doc_number: str) -> Optional[str]:
        """Correo del perfil activo con ese documento, para iniciar sesión con DNI/CE."""
        doc_number = normalize_text(doc_number)
        if not doc_number:
            raise ValidationException("Documento requerido.", {"doc_number": "Campo requerido"})
        profile = self.collection.find_one({
            "doc_type": normalize_text(doc_type).upper(),
            "doc_number": doc_number
        })
        if not profile or profile.get("status") != PROFILE_STATUS["ACTIVE"]:
            return None
        return profile.get("email")

    def get_profile(self, profile_id: str) -> Dict:
        profile = self.get_raw(profile_id)
        if not profile:
            raise AppException("Perfil no encontrado", AppException.NOT_FOUND)
        return self._serialize(profile)

    def update_own_profile(self, profile_id: str, data: Dict) -> Dict:
        """
        Actualiza nombres y foto del perfil propio. El nombre completo se
        recalcula salvo que venga explícito; de la foto solo se guarda la URL.
        """
        profile = self.get_raw(profile_id)
        if not profile:
            raise AppException("Perfil no encontrado", AppException.NOT_FOUND)

        updates = {key: data[key] for key in EDITABLE_OWN_FIELDS if key in data}
        first_name = normalize_text(updates.get("first_name", profile.get("first_name")))
        last_name = normalize_text(updates.get("last_name", profile.get("last_name")))
        if not first_name or not last_name:
            raise ValidationException(
                "Nombres y apellidos son obligatorios.",
                {"first_name": "Campo requerido"} if not first_name else {"last_name": "Campo requerido"}
            )
        updates["first_name"] = first_name
        updates["last_name"] = last_name
        updates["full_name"] = normalize_text(data.get("full_name")) or build_full_name(first_name, last_name)
        if "avatar_url" in updates:
            updates["avatar_url"] = normalize_text(updates["avatar_url"]) or None
        updates["updated_at"] = utc_now()

        self.update(profile_id, updates)
        profile.update(updates)
        return self._serialize(profile)

    def list_profiles(self, user: Dict, search: Optional[str] = None,
                      role: str = "all", status: str = "all") -> List[Dict]:
        self._require_admin(user)
        query = {}
        if role not in (None, "", "all"):
            query["role"] = role
        if status not in (None, "", "all"):
            query["status"] = status
        term = normalize_text(search).lower()
        result = []
        for profile in self.list_all(query, sort=[("created_at", DESCENDING)]):
            haystack = " ".join(
                str(profile.get(field) or "").lower() for field in ("full_name", "email", "doc_number")
            )
            if term and term not in haystack:
                continue
            result.append(self._serialize(profile))
        return result

    def list_specialists(self) -> List[Dict]:
        """Perfiles activos que pueden ser responsables de un evento."""
        profiles = self.list_all(
            {"status": PROFILE_STATUS["ACTIVE"], "role": {"$in": SPECIALIST_ROLES}},
            sort=[("full_name", ASCENDING)]
        )
        return [
            {
                "id": str(profile["_id"]),
                "full_name": profile.get("full_name") or build_full_name(profile.get("first_name"), profile.get("last_name")),
                "email": profile.get("email")
            }
            for profile in profiles
        ]

    def create_profile(self, data: Dict, user: Dict) -> Dict:
        """Alta de un usuario por un administrador."""
        self._require_admin(user)
        errors = {}
        for field in ("first_name", "last_name", "email", "password"):
            if not normalize_text(data.get(field)):
                errors[field] = "Campo requerido"
        if data.get("email") and not validate_email(normalize_text(data["email"])):
            errors["email"] = "Correo inválido"
        if data.get("role") and data["role"] not in ROLES.values():
            errors["role"] = f"Opciones: {', '.join(ROLES.values())}"
        if errors:
            raise ValidationException("Nombres, apellidos, correo y contrasena son obligatorios.", errors)

        profile = Profile(
            email=data["email"],
            first_name=data["first_name"],
            last_name=data["last_name"],
            password_hash=hash_password(data["password"]),
            role=data.get("role"),
            status=data.get("status"),
            doc_type=data.get("doc_type"),
            doc_number=data.get("doc_number")
        )
        document = profile.to_dict()
        try:
            self.collection.insert_one(document)
        except DuplicateKeyError:
            raise AppException("Ya existe un usuario con ese correo.", AppException.CONFLICT)
        log_info(f"Perfil {profile._id} creado por {user.get('id')}", "monitoreo.profiles")
        return self._serialize(document)

    def update_profile(self, profile_id: str, data: Dict, user: Dict) -> Dict:
        """Edición administrativa: datos, rol, estado y contraseña opcional."""
        self._require_admin(user)
        profile = self.get_raw(profile_id)
        if not profile:
            raise AppException("Perfil no encontrado", AppException.NOT_FOUND)

        updates = {
            key: normalize_text(data[key])
            for key in ("first_name", "last_name", "full_name", "doc_type", "doc_number")
            if key in data
        }
        if "first_name" in updates or "last_name" in updates:
            updates.setdefault("full_name", "")
            updates["full_name"] = updates["full_name"] or build_full_name(
                updates.get("first_name", profile.get("first_name")),
                updates.get("last_name", profile.get("last_name"))
            )
        if data.get("password"):
            updates["password"] = hash_password(data["password"])
        updates["updated_at"] = utc_now()
        self.update(profile_id, updates)

        if "role" in data:
            self.set_role(profile_id, data["role"], user)
        if "status" in data:
            self.set_status(profile_id, data["status"], user)
        return self.get_profile(profile_id)

    def set_role(self, profile_id: str, role: str, user: Dict) -> Dict:
        self._require_admin(user)
        if role not in ROLES.values():
            raise ValidationException("Rol inválido", {"role": f"Opciones: {', '.join(ROLES.values())}"})
        if not self.update(profile_id, {"role": role, "updated_at": utc_now()}):
            raise AppException("Perfil no encontrado", AppException.NOT_FOUND)
        log_info(f"Rol de {profile_id} cambiado a {role}", "monitoreo.profiles")
        return self.get_profile(profile_id)

    def set_status(self, profile_id: str, status: str, user: Dict) -> Dict:
        """Activa o desactiva una cuenta; una cuenta desactivada pierde el acceso."""
        self._require_admin(user)
        if status not in PROFILE_STATUS.values():
            raise ValidationException("Estado inválido", {"status": f"Opciones: {', '.join(PROFILE_STATUS.values())}"})
        if profile_id == user.get("id") and status == PROFILE_STATUS["DISABLED"]:
            raise AppException("No puedes desactivar tu propia cuenta.", AppException.CONFLICT)
        if not self.update(profile_id, {"status": status, "updated_at": utc_now()}):
            raise AppException("Perfil no encontrado", AppException.NOT_FOUND)
        log_info(f"Estado de {profile_id} cambiado a {status}", "monitoreo.profiles")
        return self.get_profile(profile_id)

    def admin_access_status(self) -> Dict:
        """Cantidad de administradores activos con contraseña para iniciar sesión."""
        admins = self.list_all({"role": ROLES["ADMIN"], "status": PROFILE_STATUS["ACTIVE"]})
        login_capable = sum(1 for admin in admins if admin.get("password"))
        return {
            "active_admins": len(admins),
            "login_capable_admins": login_capable,
            "recoverable": login_capable == 0
        }

    def recover_admin(self, email: str, password: str, code: str, recovery_code: Optional[str]) -> Dict:
        """
        Restituye el acceso de administrador cuando ninguno puede iniciar
        sesión. Requiere el código de recuperación configurado; el perfil
        con ese correo se promueve (o se crea) como administrador activo.
        """
        if not recovery_code:
            raise AppException("ADMIN_RECOVERY_CODE no configurado.", AppException.INTERNAL_ERROR)
        email = normalize_text(email).lower()
        if not validate_email(email):
            raise ValidationException("Correo invalido.", {"email": "Correo inválido"})
        if not password or len(password) < 6:
            raise ValidationException(
                "Contrasena invalida. Minimo 6 caracteres.", {"password": "Mínimo 6 caracteres"}
            )
        if normalize_text(code) != recovery_code:
            raise AppException("Codigo de recuperacion invalido.", AppException.FORBIDDEN)
        if not self.admin_access_status()["recoverable"]:
            raise AppException(
                "Ya existe al menos un administrador con acceso. Usa el modulo de Equipo para gestionar roles.",
                AppException.CONFLICT
            )

        existing = self.collection.find_one({"email": email})
        updates = {
            "password": hash_password(password),
            "role": ROLES["ADMIN"],
            "status": PROFILE_STATUS["ACTIVE"],
            "updated_at": utc_now()
        }
        if existing:
            self.update(existing["_id"], updates)
            profile_id = existing["_id"]
        else:
            profile = Profile(email=email, first_name="Admin", last_name="Recuperado",
                              password_hash=updates["password"], role=ROLES["ADMIN"])
            self.create(profile.to_dict())
            profile_id = profile._id
        log_warning(f"Acceso de administrador recuperado para {email}", "monitoreo.profiles")
        return {"id": profile_id, "email": email}
