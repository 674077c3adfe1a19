"""
Funciones de validación para datos de la aplicación.

Este módulo contiene funciones para validar datos contra esquemas predefinidos
y realizar otras validaciones comunes.

Ejemplos de uso:
    schema = {
        'title': {'type': 'string', 'required': True, 'minLength': 1},
        'status': {'type': 'string', 'enum': ['draft', 'published']}
    }
    is_valid, errors = validate_schema(data, schema)
"""

import re
import uuid

NUMERIC_CODE_PATTERN = re.compile(r"^\d+$")
EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

def new_id() -> str:
    """Genera el identificador de un documento nuevo (UUID en texto)."""
    return str(uuid.uuid4())

def validate_schema(data, schema):
    """
    Valida un objeto de datos contra un esquema

    Args:
        data (dict): Los datos a validar
        schema (dict): El esquema con las reglas de validación

    Returns:
        tuple: (is_valid, errors) donde is_valid es un booleano y errors es un dict con los errores
    """
    errors = {}

    for field, rules in schema.items():
        if rules.get('required', False) and field not in data:
            errors[field] = "Campo requerido"
            continue

        if field not in data:
            continue

        value = data[field]
        if value is None and rules.get('nullable', False):
            continue

        if 'type' in rules:
            expected_type = rules['type']

            if expected_type == 'string' and not isinstance(value, str):
                errors[field] = "Debe ser una cadena de texto"
            elif expected_type == 'integer' and (not isinstance(value, int) or isinstance(value, bool)):
                errors[field] = "Debe ser un número entero"
            elif expected_type == 'boolean' and not isinstance(value, bool):
                errors[field] = "Debe ser un valor booleano"
            elif expected_type == 'array' and not isinstance(value, list):
                errors[field] = "Debe ser una lista"
            elif expected_type == 'object' and not isinstance(value, dict):
                errors[field] = "Debe ser un objeto"

            if field in errors:
                continue

        if 'minLength' in rules and isinstance(value, (str, list)):
            min_length = rules['minLength']
            if len(value.strip() if isinstance(value, str) else value) < min_length:
                errors[field] = f"Debe tener al menos {min_length} elementos" if isinstance(value, list) \
                    else f"Debe tener al menos {min_length} caracteres"

        if 'maxLength' in rules and isinstance(value, (str, list)):
            max_length = rules['maxLength']
            if len(value) > max_length:
                errors[field] = f"Debe tener como máximo {max_length} caracteres"

        if 'pattern' in rules and isinstance(value, str):
            if not re.match(rules['pattern'], value):
                errors[field] = "No cumple con el formato requerido"

        if 'enum' in rules:
            allowed = rules['enum']
            if value not in allowed:
                errors[field] = f"Valor no permitido. Opciones válidas: {', '.join(map(str, allowed))}"

    return len(errors) == 0, errors

def validate_email(email: str) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email) is not None

def is_numeric_code(value) -> bool:
    """Códigos de institución: solo dígitos una vez removidos los espacios."""
    normalized = re.sub(r"\s+", "", str(value or "").strip())
    return NUMERIC_CODE_PATTERN.match(normalized) is not None

# Esquemas usados por validate_json en las rutas
template_schema = {
    "title": {"type": "string", "required": True, "minLength": 1, "maxLength": 200},
    "description": {"type": "string", "nullable": True, "maxLength": 2000},
    "status": {"type": "string", "enum": ["draft", "published"]},
    "sections": {"type": "array"},
    "levels_config": {"type": "object"},
    "availability": {"type": "object", "nullable": True}
}

event_schema = {
    "title": {"type": "string", "required": True, "minLength": 1, "maxLength": 200},
    "event_type": {"type": "string"},
    "description": {"type": "string", "nullable": True},
    "start_at": {"type": "string", "required": True},
    "end_at": {"type": "string", "required": True},
    "status": {"type": "string", "enum": ["active", "hidden", "closed"]},
    "responsibles": {"type": "array", "required": True},
    "objectives": {"type": "array"}
}

institution_schema = {
    "nombre_ie": {"type": "string", "required": True},
    "cod_local": {"type": "string", "required": True},
    "cod_modular": {"type": "string", "required": True},
    "nivel": {"type": "string", "required": True},
    "modalidad": {"type": "string", "required": True},
    "distrito": {"type": "string", "required": True},
    "rei": {"type": "string", "required": True},
    "nombre_director": {"type": "string", "required": True},
    "estado": {"type": "string", "enum": ["active", "inactive"]}
}

profile_self_schema = {
    "first_name": {"type": "string"},
    "last_name": {"type": "string"},
    "full_name": {"type": "string", "nullable": True},
    "avatar_url": {"type": "string", "nullable": True}
}

profile_update_schema = {
    "first_name": {"type": "string"},
    "last_name": {"type": "string"},
    "full_name": {"type": "string", "nullable": True},
    "doc_type": {"type": "string", "nullable": True},
    "doc_number": {"type": "string", "nullable": True},
    "role": {"type": "string", "enum": ["admin", "user"]},
    "status": {"type": "string", "enum": ["active", "disabled"]},
    "password": {"type": "string", "minLength": 6}
}
