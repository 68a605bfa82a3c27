"""Pytest fixtures for TaskFlow."""
from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from types import SimpleNamespace

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from taskflow.core.security import create_access_token
from taskflow.database import Base, enable_sqlite_foreign_keys, get_db
from taskflow.main import app
from taskflow.models import Department, Stage, Task, User
from taskflow.utils.password import hash_password


# --- In-memory ORM objects for engine tests --------------------------------

def make_stage(id, title, order, project_id=1, **kw) -> Stage:
    return Stage(
        id=id,
        project_id=project_id,
        title=title,
        order=order,
        color="bg-status-todo",
        type="project",
        main_responsible_id=kw.get("main_responsible_id"),
        backup_responsible_id_1=None,
        backup_responsible_id_2=None,
        is_review_stage=kw.get("is_review_stage", False),
        linked_review_stage_id=kw.get("linked_review_stage_id"),
        approved_target_stage_id=kw.get("approved_target_stage_id"),
    )


def make_user(id, name, role="user") -> User:
    return User(id=id, name=name, email=f"{name.lower()}@example.com", hashed_password="x", role=role)


def make_task(id=100, **kw) -> Task:
    return Task(
        id=id,
        title=kw.get("title", "Homepage header"),
        project_id=kw.get("project_id", 1),
        project_stage_id=kw.get("project_stage_id"),
        assignee_id=kw.get("assignee_id"),
        user_status=kw.get("user_status", "pending"),
        priority="medium",
        tags=list(kw.get("tags", [])),
        is_in_specific_stage=kw.get("is_in_specific_stage", False),
        revision_comment=kw.get("revision_comment"),
        previous_stage_id=kw.get("previous_stage_id"),
        original_assignee_id=kw.get("original_assignee_id"),
        completed_at=None,
    )


@pytest.fixture()
def website():
    """Website Redesign: Planning -> Design -> Review (gate) -> Development."""
    alice = make_user(1, "Alice")
    bob = make_user(2, "Bob")
    rita = make_user(3, "Rita", role="team-lead")
    dave = make_user(4, "Dave")
    stages = [
        make_stage(10, "Planning", 0),
        make_stage(11, "Design", 1, main_responsible_id=2),
        make_stage(12, "Review", 2, is_review_stage=True, approved_target_stage_id=13),
        make_stage(13, "Development", 3, main_responsible_id=4),
    ]
    return SimpleNamespace(
        stages=stages,
        planning=stages[0],
        design=stages[1],
        review=stages[2],
        development=stages[3],
        users={u.id: u for u in (alice, bob, rita, dave)},
        alice=alice,
        bob=bob,
        rita=rita,
        dave=dave,
    )


# --- Database + HTTP client ------------------------------------------------

@pytest.fixture()
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture()
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            yield c
    finally:
        app.dependency_overrides.clear()


def auth_headers(user_id: int) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user_id)})}"}


@pytest.fixture()
async def people(session_factory):
    """Departments and one user per role, with ready-made auth headers."""
    async with session_factory() as session:
        design = Department(name="Design")
        digital = Department(name="Digital Marketing")
        it = Department(name="IT")
        session.add_all([design, digital, it])
        await session.flush()

        def user(name, role, dept):
            return User(
                name=name,
                email=f"{name.lower()}@example.com",
                hashed_password=hash_password("password123"),
                role=role,
                department_id=dept.id if dept else None,
            )

        admin = user("Admin", "admin", None)
        design_lead = user("Rita", "team-lead", design)
        digital_lead = user("Dina", "team-lead", digital)
        it_lead = user("Ivan", "team-lead", it)
        alice = user("Alice", "user", design)
        bob = user("Bob", "user", design)
        session.add_all([admin, design_lead, digital_lead, it_lead, alice, bob])
        await session.commit()

        ids = {
            "admin": admin.id,
            "design_lead": design_lead.id,
            "digital_lead": digital_lead.id,
            "it_lead": it_lead.id,
            "alice": alice.id,
            "bob": bob.id,
        }
        departments = {"design": design.id, "digital": digital.id, "it": it.id}

    return SimpleNamespace(
        ids=ids,
        departments=departments,
        headers={name: auth_headers(uid) for name, uid in ids.items()},
    )
