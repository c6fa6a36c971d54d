import os
import sys
import tempfile
from pathlib import Path

import pytest
import anyio
import httpx
from sqlalchemy import delete
from sqlalchemy.orm import sessionmaker

BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

os.environ.setdefault("DATABASE_URL", "sqlite:///" + str(BASE_DIR / "test.db"))
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
os.environ.setdefault("MEDIA_ROOT", tempfile.mkdtemp(prefix="catalog-media-"))
os.environ.setdefault("LOG_LEVEL", "WARNING")

from app.core.config import get_settings
from app.core import db as db_module
from app.core import security
from app.core.dependencies import get_assets, get_db
from app.core.storage import AssetStore, get_asset_store
from app.models import Base, Product, ProductImage, User, UserRole
from app.services import CatalogService
from app.main import app

get_settings.cache_clear()
get_asset_store.cache_clear()

db_module._engine = None
db_module._SessionLocal = None
_db_path = BASE_DIR / "test.db"


def _create_session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture(scope="session")
def engine():
    if _db_path.exists():
        _db_path.unlink()
    engine = db_module.create_db_engine(get_settings().DATABASE_URL)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    if _db_path.exists():
        _db_path.unlink()


@pytest.fixture(scope="session")
def session_factory(engine):
    return _create_session_factory(engine)


@pytest.fixture(autouse=True)
def _clean_tables(engine):
    yield
    with engine.begin() as connection:
        connection.execute(delete(ProductImage))
        connection.execute(delete(Product))
        connection.execute(delete(User))


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def asset_store(tmp_path):
    return AssetStore(tmp_path / "product-images")


@pytest.fixture()
def catalog_service(db_session, asset_store):
    return CatalogService(db_session, asset_store)


def _make_user(db_session, username: str, role: UserRole) -> User:
    user = User(
        username=username,
        email=f"{username}@example.com",
        password_hash=security.create_password_hash("secret123"),
        role=role,
    )
    db_session.add(user)
    db_session.commit()
    return user


def _auth_headers(user: User) -> dict[str, str]:
    token, _ = security.create_access_token(subject=user.username, role=user.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def admin_headers(db_session):
    return _auth_headers(_make_user(db_session, "admin-user", UserRole.ADMIN))


@pytest.fixture()
def user_headers(db_session):
    return _auth_headers(_make_user(db_session, "plain-user", UserRole.USER))


@pytest.fixture()
def client(session_factory, asset_store):
    def _get_test_db():
        db = session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_test_db
    app.dependency_overrides[get_assets] = lambda: asset_store

    class _SyncASGIClient:
        def __init__(self, fastapi_app):
            self._client = httpx.AsyncClient(
                transport=httpx.ASGITransport(app=fastapi_app),
                base_url="http://testserver",
            )

        def request(self, method: str, url: str, **kwargs):
            async def _do_request():
                return await self._client.request(method, url, **kwargs)

            return anyio.run(_do_request)

        def get(self, url: str, **kwargs):
            return self.request("GET", url, **kwargs)

        def post(self, url: str, **kwargs):
            return self.request("POST", url, **kwargs)

        def put(self, url: str, **kwargs):
            return self.request("PUT", url, **kwargs)

        def delete(self, url: str, **kwargs):
            return self.request("DELETE", url, **kwargs)

        def close(self):
            async def _do_close():
                await self._client.aclose()

            anyio.run(_do_close)

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc, tb):
            self.close()

    with _SyncASGIClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
