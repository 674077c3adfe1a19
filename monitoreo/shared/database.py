from pymongo import MongoClient, ASCENDING, DESCENDING
from typing import Optional
import dotenv
from datetime import datetime
import os
import logging
import threading

from monitoreo.shared.constants import COLLECTIONS

dotenv.load_dotenv()

logger = logging.getLogger(__name__)

def get_config_value(key, default=None):
    """
    Obtiene un valor de configuración desde las variables de entorno.

    Args:
        key (str): La clave de la variable de entorno
        default: Valor por defecto si no se encuentra la variable

    Returns:
        El valor de la variable de entorno o el valor por defecto
    """
    value = os.getenv(key, default)
    if value is None:
        logger.warning(f"Variable de entorno '{key}' no encontrada")
    return value

class DatabaseConnection:
    _instance: Optional[MongoClient] = None
    _db = None
    _indexes_setup_complete = False
    _indexes_setup_lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> MongoClient:
        """Obtiene la instancia singleton del cliente MongoDB"""
        if cls._instance is None:
            mongo_uri = get_config_value('MONGO_DB_URI')
            if not mongo_uri:
                logger.error("No se encontró la variable MONGO_DB_URI en la configuración")
                raise ValueError("MONGO_DB_URI no está configurado")

            logger.info("Configurando conexión a MongoDB...")
            cls._instance = MongoClient(
                mongo_uri,
                maxPoolSize=20,
                minPoolSize=1,
                connectTimeoutMS=20000,
                serverSelectionTimeoutMS=20000,
                socketTimeoutMS=20000,
                tz_aware=True
            )

            try:
                cls._instance.admin.command('ping')
                logger.info("Conexión a MongoDB establecida")
            except Exception as e:
                logger.error(f"Error conectando a MongoDB: {str(e)}")
                cls._instance = None
                raise

        return cls._instance

    @classmethod
    def get_db(cls):
        """Obtiene la instancia de la base de datos"""
        if cls._db is None:
            with cls._indexes_setup_lock:
                if cls._db is None:
                    db_name = get_config_value('DB_NAME')
                    if not db_name:
                        logger.error("No se encontró la variable DB_NAME en la configuración")
                        raise ValueError("DB_NAME no está configurado")
                    cls._db = cls.get_instance()[db_name]
        return cls._db

def get_db():
    """Helper function para obtener la conexión a la BD"""
    return DatabaseConnection.get_db()

def _ensure_index(collection, keys, name=None, **kwargs):
    """Crea un índice si no existe uno con el mismo nombre o las mismas claves."""
    try:
        start_time = datetime.utcnow()
        existing_indexes = collection.index_information()
        if name and name in existing_indexes:
            logger.debug(f"Índice '{name}' ya existe en {collection.name}")
            return name

        keys_tuple = tuple(keys)
        for existing_name, info in existing_indexes.items():
            if tuple(info.get('key', [])) == keys_tuple:
                logger.debug(
                    f"Índice '{existing_name}' en {collection.name} ya cubre las claves {keys_tuple}; no se recreará"
                )
                return existing_name

        created_name = collection.create_index(keys, name=name, **kwargs)
        duration = (datetime.utcnow() - start_time).total_seconds()
        logger.info(f"Índice '{created_name}' creado en {collection.name} ({duration:.3f}s)")
        return created_name
    except Exception as e:
        logger.error(f"Error creando índice {name or keys} en {collection.name}: {str(e)}")
        return None

def setup_database_indexes():
    """
    Configura los índices de las colecciones de monitoreo.

    Los índices de instituciones y perfiles son únicos porque la aplicación
    depende de ellos para rechazar códigos y correos duplicados. El índice de
    fichas por (plantilla, autor, estado) NO es único: la regla de una sola
    ficha en progreso por especialista se aplica consultando antes de crear.
    """
    with DatabaseConnection._indexes_setup_lock:
        if DatabaseConnection._indexes_setup_complete:
            logger.debug("Los índices ya han sido configurados. Saltando setup_database_indexes.")
            return True

    try:
        logger.info("Iniciando configuración de índices de base de datos...")
        db = get_db()
        results = []

        templates = db[COLLECTIONS["TEMPLATES"]]
        results.append(_ensure_index(templates, [("status", ASCENDING)], name="idx_templates_status"))
        results.append(_ensure_index(templates, [("updated_at", DESCENDING)], name="idx_templates_updated"))

        instances = db[COLLECTIONS["INSTANCES"]]
        results.append(_ensure_index(instances, [
            ("template_id", ASCENDING),
            ("created_by", ASCENDING),
            ("status", ASCENDING)
        ], name="idx_instances_owner_status"))
        results.append(_ensure_index(instances, [("created_by", ASCENDING)], name="idx_instances_created_by"))

        events = db[COLLECTIONS["EVENTS"]]
        results.append(_ensure_index(events, [("start_at", ASCENDING)], name="idx_events_start"))
        results.append(_ensure_index(
            db[COLLECTIONS["EVENT_RESPONSIBLES"]], [("event_id", ASCENDING)], name="idx_responsibles_event"
        ))
        results.append(_ensure_index(
            db[COLLECTIONS["EVENT_RESPONSIBLES"]], [("user_id", ASCENDING)], name="idx_responsibles_user"
        ))
        results.append(_ensure_index(
            db[COLLECTIONS["EVENT_OBJECTIVES"]], [("event_id", ASCENDING), ("order", ASCENDING)],
            name="idx_objectives_event"
        ))

        institutions = db[COLLECTIONS["INSTITUTIONS"]]
        results.append(_ensure_index(institutions, [("cod_local", ASCENDING)], name="idx_institutions_cod_local", unique=True))
        results.append(_ensure_index(institutions, [("cod_modular", ASCENDING)], name="idx_institutions_cod_modular", unique=True))
        results.append(_ensure_index(institutions, [("estado", ASCENDING)], name="idx_institutions_estado"))

        profiles = db[COLLECTIONS["PROFILES"]]
        results.append(_ensure_index(profiles, [("email", ASCENDING)], name="idx_profiles_email", unique=True))
        results.append(_ensure_index(profiles, [("doc_type", ASCENDING), ("doc_number", ASCENDING)], name="idx_profiles_document"))
        results.append(_ensure_index(profiles, [("role", ASCENDING), ("status", ASCENDING)], name="idx_profiles_role_status"))

        results.append(_ensure_index(
            db[COLLECTIONS["ASSISTANT_LOGS"]], [("user_id", ASCENDING), ("created_at", DESCENDING)],
            name="idx_assistant_logs_user"
        ))

        all_ok = all(result is not None for result in results)
        with DatabaseConnection._indexes_setup_lock:
            DatabaseConnection._indexes_setup_complete = all_ok
        if not all_ok:
            logger.warning("Algunos índices no pudieron crearse; se reintentará en el próximo arranque")
        return all_ok
    except Exception as e:
        logger.error(f"Error configurando índices: {str(e)}")
        return False
