#!/usr/bin/env python3
"""
Script para configurar los índices de MongoDB del monitoreo.
Ejecutar una vez después del deployment inicial (o con SETUP_INDEXES=1 al arrancar).

Ejecución: python scripts/setup_mongodb_indexes.py
"""

import sys
import logging

from monitoreo.shared.constants import COLLECTIONS
from monitoreo.shared.database import get_db, setup_database_indexes

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

def verify_indexes():
    """Lista los índices existentes por colección y devuelve el total."""
    db = get_db()
    total = 0
    for collection_name in COLLECTIONS.values():
        indexes = db[collection_name].index_information()
        total += len(indexes)
        logger.info(f"{collection_name}: {', '.join(sorted(indexes))}")
    return total

def main():
    logger.info("Configurando índices de MongoDB...")
    if not setup_database_indexes():
        logger.error("No se pudieron configurar todos los índices")
        sys.exit(1)
    total = verify_indexes()
    logger.info(f"Configuración completada. Índices en el sistema: {total}")

if __name__ == "__main__":
    main()
