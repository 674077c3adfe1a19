# Configuración de la aplicación
APP_NAME = "monitoreo-backend"
APP_PREFIX = "/api"

# Zona horaria usada para normalizar días de calendario
DEFAULT_TIMEZONE = "America/Lima"

# Roles de usuario
ROLES = {
    "ADMIN": "admin",
    "USER": "user"
}

# Roles que se consideran especialistas (incluye el valor legado)
SPECIALIST_ROLES = ["user", "especialista"]

# Estados de perfil
PROFILE_STATUS = {
    "ACTIVE": "active",
    "DISABLED": "disabled"
}

# Estados de plantilla de monitoreo
TEMPLATE_STATUS = {
    "DRAFT": "draft",
    "PUBLISHED": "published"
}

# Estados de ficha (instancia de monitoreo)
INSTANCE_STATUS = {
    "IN_PROGRESS": "in_progress",
    "COMPLETED": "completed"
}

# Estados de institución educativa
INSTITUTION_STATUS = {
    "ACTIVE": "active",
    "INACTIVE": "inactive"
}

# Niveles de escala de una plantilla
LEVELS_CONFIG = {
    "MIN_LEVELS": 3,
    "MAX_LEVELS": 5,
    "STANDARD_TYPE": "standard",
    "CUSTOM_TYPE": "custom"
}

DEFAULT_LEVELS = [
    {"key": "L1", "label": "Nivel 1", "description": ""},
    {"key": "L2", "label": "Nivel 2", "description": ""},
    {"key": "L3", "label": "Nivel 3", "description": ""}
]

# Configuración de paginación
PAGINATION = {
    "DEFAULT_PAGE": 1,
    "DEFAULT_PER_PAGE": 10,
    "MAX_PER_PAGE": 100
}

# Ventana de agenda (próximos días)
AGENDA_DAYS = 7

# Nombres de colecciones MongoDB
COLLECTIONS = {
    # Monitoreos
    "TEMPLATES": "monitoring_templates",
    "INSTANCES": "monitoring_instances",

    # Seguimiento
    "EVENTS": "monitoring_events",
    "EVENT_RESPONSIBLES": "monitoring_event_responsibles",
    "EVENT_OBJECTIVES": "monitoring_event_objectives",

    # Usuarios e instituciones
    "PROFILES": "profiles",
    "INSTITUTIONS": "institutions",

    # Asistente
    "ASSISTANT_LOGS": "assistant_logs"
}
