"""
Fixtures compartidas para Pytest.
Configura base de datos de test, clientes HTTP y factories de cuentas/tarjetas.
"""

from collections.abc import AsyncGenerator
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import CurrentUser, get_current_user
from app.auth.rbac import SUPER_ADMIN_ROLE
from app.database import Database, get_db
from app.main import app
from app.models.card import CardType
from app.models.finance import AccountType
from app.schemas.cards import CardCreate
from app.schemas.finance import AccountCreate
from app.services import account_service, card_service

# ── DB de test (SQLite async) ────────────────────────
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"

TEST_USER_ID = 1


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[Database, None]:
    """Crea y destruye las tablas para cada test."""
    db = Database(TEST_DATABASE_URL)
    await db.drop_all()
    await db.create_all()
    yield db
    await db.drop_all()
    await db.dispose()


@pytest_asyncio.fixture
async def db_session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """Provee una sesión de DB de test."""
    async with database.session() as session:
        yield session


@pytest.fixture
def current_user() -> CurrentUser:
    return CurrentUser(id=TEST_USER_ID, roles=[SUPER_ADMIN_ROLE])


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession, current_user: CurrentUser
) -> AsyncGenerator[AsyncClient, None]:
    """Cliente HTTP autenticado que usa la DB de test."""

    async def _get_test_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_test_db
    app.dependency_overrides[get_current_user] = lambda: current_user

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def anonymous_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Cliente HTTP sin override de autenticación (usa el JWT real)."""

    async def _get_test_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_test_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Factories ────────────────────────────────────────


@pytest.fixture
def make_account(db_session: AsyncSession):
    """Crea una cuenta financiera activa (opcionalmente desactivada)."""

    async def _make(
        name: str = "Cuenta Test",
        opening_balance: str | Decimal = "0",
        active: bool = True,
        account_type: AccountType = AccountType.CUENTA_CORRIENTE,
    ):
        account = await account_service.create_account(
            db_session,
            TEST_USER_ID,
            AccountCreate(
                name=name,
                account_type=account_type,
                opening_balance=Decimal(str(opening_balance)),
            ),
        )
        if not active:
            account = await account_service.deactivate_account(
                db_session, TEST_USER_ID, account.id
            )
        return account

    return _make


@pytest.fixture
def make_card(db_session: AsyncSession, make_account):
    """Crea una tarjeta con su cuenta de respaldo."""

    async def _make(
        card_type: CardType = CardType.PRECARGABLE,
        account_id: int | None = None,
        employee_id: int = 7,
        alias: str | None = "Tarjeta Test",
    ):
        if account_id is None:
            account = await make_account(name="Respaldo tarjeta", account_type=AccountType.TARJETA)
            account_id = account.id
        return await card_service.create_card(
            db_session,
            TEST_USER_ID,
            CardCreate(
                card_type=card_type,
                employee_id=employee_id,
                account_id=account_id,
                alias=alias,
            ),
        )

    return _make
