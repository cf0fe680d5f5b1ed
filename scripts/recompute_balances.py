"""
Recalcula el saldo de todas las cuentas financieras desde el libro de movimientos.

Uso:
    python scripts/recompute_balances.py

Informa las cuentas cuyo saldo persistido no coincidía con el recalculado.
"""

import asyncio
import logging
import sys
from pathlib import Path

# Agregar el directorio raíz al path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app.config import get_settings  # noqa: E402
from app.database import Database  # noqa: E402
from app.services import balance_service  # noqa: E402


async def recompute_balances() -> int:
    """Recalcula todo y devuelve la cantidad de cuentas corregidas."""
    database = Database.from_settings(get_settings())
    try:
        async with database.session() as db:
            drifted = await balance_service.reconcile_all_balances(db)
    finally:
        await database.dispose()

    for account_id, before, after in drifted:
        print(f"  cuenta {account_id}: {before} → {after}")
    print(f"Recálculo completado: {len(drifted)} cuentas corregidas.")
    return len(drifted)


def main():
    logging.basicConfig(level=get_settings().LOG_LEVEL)
    asyncio.run(recompute_balances())


if __name__ == "__main__":
    main()
