"""
Estandarización para la API de monitoreo

Este módulo unifica todas las funcionalidades de estandarización para la API:
1. Estandarización de rutas (APIBlueprint, APIRoute)
2. Estandarización de servicios (BaseService)
3. Códigos de error estandarizados (ErrorCodes)
"""

from flask import jsonify, Blueprint
from pymongo.errors import PyMongoError
from monitoreo.shared.decorators import handle_errors, auth_required, role_required, validate_json
from monitoreo.shared.exceptions import AppException
from monitoreo.shared.utils import ensure_json_serializable, serialize_document
from monitoreo.shared.validators import new_id
from typing import List, Dict, Any, Optional
from monitoreo.shared.database import get_db

#-------------------------------------------------------
# ESTANDARIZACIÓN DE RUTAS
#-------------------------------------------------------

class APIBlueprint(Blueprint):
    """
    Extensión de Flask Blueprint para definir rutas estandarizadas.
    """

    def __init__(self, name, import_name, **kwargs):
        super().__init__(name, import_name, **kwargs)


class APIRoute:
    """
    Clase de utilidad para estandarizar rutas y respuestas.

    Proporciona decoradores y métodos para crear respuestas estandarizadas.
    """

    @staticmethod
    def standard(auth_required_flag: bool = False,
                 roles: List[str] = None,
                 required_fields: List[str] = None,
                 schema: Dict = None):
        """
        Decorador compuesto que aplica los decoradores estándar de la aplicación.

        Args:
            auth_required_flag: Si es True, requiere autenticación JWT
            roles: Lista de roles permitidos para acceder a la ruta
            required_fields: Lista de campos requeridos en el cuerpo JSON
            schema: Esquema de validación para el cuerpo JSON

        Returns:
            Función decoradora compuesta
        """
        decorators = [handle_errors]

        # La autenticación va antes que la validación del cuerpo
        if auth_required_flag:
            decorators.append(auth_required)
            if roles:
                decorators.append(role_required(roles))

        if required_fields or schema:
            decorators.append(validate_json(required_fields, schema))

        def decorator(f):
            for decorator in reversed(decorators):
                f = decorator(f)
            return f

        return decorator

    @staticmethod
    def success(data: Any = None, message: str = None, status_code: int = 200) -> tuple:
        """
        Crea una respuesta exitosa estandarizada.

        Args:
            data: Datos a incluir en la respuesta (opcional)
            message: Mensaje descriptivo (opcional)
            status_code: Código de estado HTTP (por defecto 200)

        Returns:
            Tupla (response, status_code) para retornar desde una ruta Flask
        """
        response = {"success": True}

        if data is not None:
            response["data"] = ensure_json_serializable(data)

        if message:
            response["message"] = message

        return jsonify(response), status_code

    @staticmethod
    def error(error_code: str, message: str, details: Dict = None, status_code: int = 400) -> tuple:
        """
        Crea una respuesta de error estandarizada.

        Args:
            error_code: Código de error único (ej. "RECURSO_NO_ENCONTRADO")
            message: Mensaje descriptivo del error
            details: Detalles adicionales del error (opcional)
            status_code: Código de estado HTTP (por defecto 400)
        """
        response = {
            "success": False,
            "error": error_code,
            "message": message
        }

        if details:
            response["details"] = details

        return jsonify(response), status_code

#-------------------------------------------------------
# ESTANDARIZACIÓN DE SERVICIOS
#-------------------------------------------------------

class BaseService:
    """
    Clase base para servicios que provee funcionalidad CRUD estándar.

    La colección se resuelve al primer uso, de modo que los servicios pueden
    instanciarse al importar las rutas sin abrir la conexión a MongoDB.
    Los documentos guardan su identificador (UUID en texto) en `_id` y se
    exponen con la clave `id`.
    """

    def __init__(self, collection_name: str):
        self.collection_name = collection_name

    @property
    def db(self):
        return get_db()

    @property
    def collection(self):
        return self.db[self.collection_name]

    def get_by_id(self, id: str) -> Optional[Dict]:
        """
        Obtiene un documento por su ID.

        Returns:
            Documento serializado o None si no existe
        """
        return serialize_document(self.collection.find_one({"_id": id}))

    def get_raw(self, id: str) -> Optional[Dict]:
        """Documento tal como está almacenado (fechas como datetime)."""
        return self.collection.find_one({"_id": id})

    def list_all(self, filter: Dict = None, limit: int = 0, skip: int = 0, sort=None) -> List[Dict]:
        """
        Lista todos los documentos que coinciden con el filtro.

        Args:
            filter: Filtro para aplicar a la consulta
            limit: Número máximo de documentos a retornar (0 = sin límite)
            skip: Número de documentos a omitir
            sort: Lista de tuplas (campo, dirección)
        """
        cursor = self.collection.find(filter or {})
        if sort:
            cursor = cursor.sort(sort)
        if skip:
            cursor = cursor.skip(skip)
        if limit > 0:
            cursor = cursor.limit(limit)
        return list(cursor)

    def create(self, data: Dict) -> str:
        """
        Crea un nuevo documento y devuelve su ID.

        Raises:
            AppException: Si ocurre un error durante la creación
        """
        document = dict(data)
        document.setdefault("_id", new_id())
        try:
            result = self.collection.insert_one(document)
            return str(result.inserted_id)
        except PyMongoError as e:
            raise AppException(f"Error al crear documento: {str(e)}", AppException.BAD_REQUEST)

    def upsert(self, id: str, data: Dict) -> str:
        """Reemplaza (o crea) el documento completo con el ID indicado."""
        document = {key: value for key, value in data.items() if key not in ("_id", "id")}
        try:
            self.collection.replace_one({"_id": id}, document, upsert=True)
        except PyMongoError as e:
            raise AppException(f"Error al guardar documento: {str(e)}", AppException.BAD_REQUEST)
        return id

    def update(self, id: str, data: Dict) -> bool:
        """
        Actualiza los campos proporcionados de un documento existente.

        Returns:
            True si el documento existe
        """
        try:
            result = self.collection.update_one({"_id": id}, {"$set": data})
        except PyMongoError as e:
            raise AppException(f"Error al actualizar documento: {str(e)}", AppException.BAD_REQUEST)
        return result.matched_count > 0

    def delete(self, id: str) -> bool:
        """
        Elimina un documento.

        Returns:
            True si se eliminó correctamente, False si no se encontró el documento
        """
        try:
            result = self.collection.delete_one({"_id": id})
        except PyMongoError as e:
            raise AppException(f"Error al eliminar documento: {str(e)}", AppException.BAD_REQUEST)
        return result.deleted_count > 0

    def count(self, filter: Dict = None) -> int:
        return self.collection.count_documents(filter or {})

#-------------------------------------------------------
# CÓDIGOS DE ERROR ESTANDARIZADOS
#-------------------------------------------------------

class ErrorCodes:
    """
    Códigos de error estandarizados para toda la aplicación.
    """

    # Errores de recursos
    RESOURCE_NOT_FOUND = "RECURSO_NO_ENCONTRADO"    # 404
    RESOURCE_ALREADY_EXISTS = "RECURSO_YA_EXISTE"   # 409

    # Errores de validación
    INVALID_DATA = "DATOS_INVALIDOS"                # 400
    MISSING_FIELDS = "CAMPOS_FALTANTES"             # 400
    VALIDATION_ERROR = "ERROR_VALIDACION"           # 400
    INVALID_ID = "ID_INVALIDO"                      # 400

    # Errores de autenticación y autorización
    AUTHENTICATION_ERROR = "ERROR_AUTENTICACION"    # 401
    INVALID_CREDENTIALS = "CREDENCIALES_INVALIDAS"  # 401
    PERMISSION_DENIED = "PERMISO_DENEGADO"          # 403

    # Errores de operaciones
    OPERATION_FAILED = "OPERACION_FALLIDA"          # 400
    EXTERNAL_SERVICE_ERROR = "ERROR_SERVICIO_EXTERNO"  # 502

    # Errores de servidor
    SERVER_ERROR = "ERROR_SERVIDOR"                 # 500
