#!/usr/bin/env python3
"""
Crea (o promueve) un perfil administrador activo.

Útil para el primer arranque, cuando todavía no existe ningún usuario que
pueda dar de alta a los demás.

Ejecución: python scripts/create_admin.py correo@dominio.pe "Nombres" "Apellidos"
La contraseña se solicita por consola.
"""

import sys
import getpass
import logging

from monitoreo.shared.constants import COLLECTIONS, ROLES, PROFILE_STATUS
from monitoreo.shared.database import get_db
from monitoreo.shared.validators import validate_email
from monitoreo.profiles.models import Profile, hash_password
from monitoreo.timeline.dates import utc_now

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

def create_admin(email, first_name, last_name, password):
    profiles = get_db()[COLLECTIONS["PROFILES"]]
    email = email.strip().lower()
    existing = profiles.find_one({"email": email})
    if existing:
        profiles.update_one({"_id": existing["_id"]}, {"$set": {
            "role": ROLES["ADMIN"],
            "status": PROFILE_STATUS["ACTIVE"],
            "password": hash_password(password),
            "updated_at": utc_now()
        }})
        logger.info(f"Perfil {existing['_id']} promovido a administrador")
        return existing["_id"]

    profile = Profile(
        email=email,
        first_name=first_name,
        last_name=last_name,
        password_hash=hash_password(password),
        role=ROLES["ADMIN"]
    )
    profiles.insert_one(profile.to_dict())
    logger.info(f"Administrador {profile._id} creado")
    return profile._id

def main():
    if len(sys.argv) < 4:
        print(__doc__)
        sys.exit(1)
    email, first_name, last_name = sys.argv[1:4]
    if not validate_email(email.strip()):
        logger.error("Correo inválido")
        sys.exit(1)
    password = getpass.getpass("Contraseña: ")
    if len(password) < 6:
        logger.error("La contraseña debe tener al menos 6 caracteres")
        sys.exit(1)
    create_admin(email, first_name, last_name, password)

if __name__ == "__main__":
    main()
