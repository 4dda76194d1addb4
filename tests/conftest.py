"""
Pytest fixtures for source control tests.

This module provides:
1. Settings pointing at a per-test temporary user folder
2. An in-memory SQLite database (aiosqlite) with all tables created
3. Local bare git repositories for transport tests
"""

from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from git import Repo
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from sourcecontrol.config import Settings
from sourcecontrol.models.orm import Base

TEST_SECRET_KEY = "test-secret-key-for-source-control-32-chars"


# ==================== SETTINGS ====================


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated to the test's temporary directory."""
    return Settings(
        environment="testing",
        database_url="sqlite+aiosqlite:///:memory:",
        user_folder=tmp_path / "user",
        secret_key=TEST_SECRET_KEY,
    )


# ==================== DATABASE FIXTURES ====================


@pytest_asyncio.fixture
async def async_engine():
    """
    In-memory SQLite engine.

    StaticPool keeps a single connection so every session sees the same
    in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for each test."""
    factory = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session
        await session.rollback()


# ==================== GIT FIXTURES ====================


@pytest.fixture
def bare_repo(tmp_path: Path) -> Path:
    """Local bare git repo with no branches. Clones check out main."""
    repo_path = tmp_path / "remote.git"
    repo = Repo.init(str(repo_path), bare=True)
    repo.git.symbolic_ref("HEAD", "refs/heads/main")
    return repo_path


def clone_and_commit(bare_repo: Path, target: Path, files: dict[str, str], branch: str = "main") -> Repo:
    """Clone `bare_repo`, write `files`, commit and push them to `branch`."""
    repo = Repo.clone_from(str(bare_repo), str(target))
    with repo.config_writer() as cw:
        cw.set_value("user", "name", "Test")
        cw.set_value("user", "email", "test@localhost")
    for relative, content in files.items():
        path = target / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    repo.git.add("-A")
    repo.git.commit("-m", "test data")
    repo.git.push("origin", f"HEAD:refs/heads/{branch}")
    return repo


@pytest.fixture
def remote_commit():
    """Commit files to a bare remote from a throwaway clone (see clone_and_commit)."""
    return clone_and_commit
