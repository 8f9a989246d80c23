import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./unused-test.db"
os.environ["JWT_SECRET"] = "test-secret-key"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["AUTO_CREATE_TABLES"] = "false"

from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.main import app
from app.database import Base, get_session
from app.auth.jwt import auth_service
from app.models import Station, User, UserRole
from mobile.config import MobileSettings
from mobile.connectivity import StaticProbe
from mobile.container import build_sync_client

from tests.factories import OPERATOR_PASSWORD


@pytest.fixture
async def engine(tmp_path):
	"""Fresh SQLite database per test"""
	engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'server.db'}", echo=False)

	async with engine.begin() as conn:
		await conn.run_sync(Base.metadata.create_all)

	yield engine

	await engine.dispose()


@pytest.fixture
def session_factory(engine):
	return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
	async with session_factory() as session:
		yield session


@pytest.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
	"""API client; every request gets its own session, like in production"""

	async def override_get_session():
		async with session_factory() as session:
			try:
				yield session
				await session.commit()
			except Exception:
				await session.rollback()
				raise

	app.dependency_overrides[get_session] = override_get_session

	async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
		yield client

	app.dependency_overrides.clear()


async def _create_user(session_factory, email: str, role: UserRole, first_name: str) -> User:
	async with session_factory() as session:
		user = User(
			email=email,
			hashed_password=auth_service.hash_password(OPERATOR_PASSWORD),
			first_name=first_name,
			last_name="Test",
			role=role,
			is_active=True
		)
		session.add(user)
		await session.commit()
		return user


async def _create_station(session_factory, operator: User, name: str) -> Station:
	async with session_factory() as session:
		station = Station(
			name=name,
			name_ar=f"محطة {name}",
			location_name="Riyadh",
			location_name_ar="الرياض",
			latitude=24.7136,
			longitude=46.6753,
			capacity_liters=50000,
			operator_id=operator.id,
			status="active"
		)
		session.add(station)
		await session.commit()
		return station


@pytest.fixture
async def operator(session_factory) -> User:
	return await _create_user(session_factory, "operator@example.com", UserRole.OPERATOR, "Omar")


@pytest.fixture
async def other_operator(session_factory) -> User:
	return await _create_user(session_factory, "other@example.com", UserRole.OPERATOR, "Sara")


@pytest.fixture
async def admin_user(session_factory) -> User:
	return await _create_user(session_factory, "admin@example.com", UserRole.ADMIN, "Admin")


@pytest.fixture
async def station(session_factory, operator: User) -> Station:
	return await _create_station(session_factory, operator, "North Plant")


@pytest.fixture
async def second_station(session_factory, operator: User) -> Station:
	return await _create_station(session_factory, operator, "South Plant")


@pytest.fixture
async def foreign_station(session_factory, other_operator: User) -> Station:
	return await _create_station(session_factory, other_operator, "East Plant")


def _token_for(user: User) -> str:
	return auth_service.create_access_token({"sub": str(user.id), "role": user.role.value})


@pytest.fixture
def auth_headers(operator: User) -> dict:
	return {"Authorization": f"Bearer {_token_for(operator)}"}


@pytest.fixture
def other_headers(other_operator: User) -> dict:
	return {"Authorization": f"Bearer {_token_for(other_operator)}"}


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
	return {"Authorization": f"Bearer {_token_for(admin_user)}"}


@pytest.fixture
async def make_device(client, tmp_path):
	"""Factory for device-side service bundles talking to the test app"""
	devices = []

	async def factory(name: str = "device", online: bool = True, transport=None):
		settings = MobileSettings(
			API_BASE_URL="http://test",
			LOCAL_DB_URL=f"sqlite+aiosqlite:///{tmp_path / name}.db",
			AUTO_SYNC=False,
		)
		services = build_sync_client(
			settings=settings,
			transport=transport or ASGITransport(app=app),
			probe=StaticProbe(online),
		)
		await services.start(poll=False)
		devices.append(services)
		return services

	yield factory

	for services in devices:
		await services.close()
