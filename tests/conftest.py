"""Shared fixtures: a throwaway SQLite database per test and an in-memory object store."""
import io
import uuid
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import officeshare.models  # noqa: F401
from officeshare.core.database import Base, get_db
from officeshare.core.security import Identity, create_access_token, get_password_hash
from officeshare.main import app
from officeshare.models.organization import ROLE_ADMIN, ROLE_MEMBER, Membership, Organization
from officeshare.models.share_link import ShareLink
from officeshare.models.user import User
from officeshare.services.storage import ObjectInfo, ObjectNotFound, get_object_store


class FakeObject:
    def __init__(self, data: bytes):
        self._buf = io.BytesIO(data)
        self.closed = False

    def read(self, amt=None):
        return self._buf.read(amt)

    def close(self):
        self.closed = True


class FakeObjectStore:
    """Stands in for the MinIO-backed store; same coroutine interface."""

    def __init__(self):
        self.objects = {}
        self.opened = []

    async def put(self, path, file_path, content_type="application/octet-stream"):
        with open(file_path, "rb") as fh:
            self.objects[path] = fh.read()

    async def stat(self, path):
        if path not in self.objects:
            raise ObjectNotFound(path)
        return ObjectInfo(path=path, size=len(self.objects[path]))

    async def open(self, path):
        if path not in self.objects:
            raise ObjectNotFound(path)
        obj = FakeObject(self.objects[path])
        self.opened.append(obj)
        return obj

    async def delete(self, path):
        self.objects.pop(path, None)

    async def ping(self):
        return None


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def store():
    return FakeObjectStore()


@pytest_asyncio.fixture
async def client(session_factory, store):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_object_store] = lambda: store
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac
    app.dependency_overrides.clear()


async def make_user(db, email=None, role="user") -> User:
    user = User(
        email=email or f"{uuid.uuid4().hex[:8]}@example.com",
        hashed_password=get_password_hash("correct-horse"),
        role=role,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def make_org(db, creator, secret_key="ABC123", max_members=5) -> Organization:
    org = Organization(name="Head Office", description="", secret_key=secret_key,
                       max_members=max_members, created_by=creator.id)
    db.add(org)
    await db.flush()
    db.add(Membership(organization_id=org.id, user_id=creator.id, role=ROLE_ADMIN))
    await db.commit()
    await db.refresh(org)
    return org


async def add_member(db, org, user) -> Membership:
    membership = Membership(organization_id=org.id, user_id=user.id, role=ROLE_MEMBER)
    db.add(membership)
    await db.commit()
    return membership


async def make_link(db, owner, organization=None, expires_in=timedelta(hours=1), max_views=3, views=0,
                    file_name="report.pdf", store=None, content=b"%PDF-1.4 hello") -> ShareLink:
    link_id = uuid.uuid4().hex
    now = datetime.utcnow()
    link = ShareLink(
        link_id=link_id,
        owner_id=owner.id,
        organization_id=organization.id if organization else None,
        object_path=f"{owner.id}/{link_id}/{file_name}",
        file_name=file_name,
        file_size=len(content),
        created_at=now,
        expires_at=now + expires_in,
        max_views=max_views,
        views=views,
    )
    db.add(link)
    await db.commit()
    await db.refresh(link)
    if store is not None:
        store.objects[link.object_path] = content
    return link


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': user.email})}"}


def identity(user) -> Identity:
    return Identity.from_user(user)
