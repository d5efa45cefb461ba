"""Pytest configuration and shared fixtures for docknobs tests."""

import asyncio
import sys
from datetime import datetime
from pathlib import Path

import pytest
import pytest_asyncio

# Add the package source to path for testing
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from docknobs import (  # noqa: E402
    ConnectionManager,
    MemoryStore,
    ModelHandle,
    Schema,
    SchemaRegistry,
    after_field,
)


class BlockingStore(MemoryStore):
    """Memory store whose operations wait until released.

    Lets tests hold an operation in flight while the connection closes.
    """

    def __init__(self, address="memory://blocking", options=None):
        super().__init__(address, options)
        self.release = asyncio.Event()
        self.started = asyncio.Event()

    async def persist(self, kind, fields):
        self.started.set()
        await self.release.wait()
        return await super().persist(kind, fields)

    async def delete(self, kind, identity):
        self.started.set()
        await self.release.wait()
        await super().delete(kind, identity)


@pytest.fixture
def blocking_store():
    """A store that holds persist and delete until ``release`` is set."""
    return BlockingStore()


@pytest.fixture
def registry():
    """An empty schema registry."""
    return SchemaRegistry("test")


@pytest.fixture
def user_schema():
    """Name, age, active flag and a defaulted date, as a user profile."""
    return (
        Schema("User")
        .field("name", "string")
        .field("age", "number")
        .field("active", "boolean")
        .field("date", "timestamp", default=datetime.now)
    )


@pytest.fixture
def appointment_schema():
    """Appointment whose end must come after its start."""
    return (
        Schema("Appointment")
        .field("label", "string")
        .field("start", "timestamp")
        .field(
            "end",
            "timestamp",
            validators=[after_field("start", "{VALUE} must be after the start date")],
        )
    )


@pytest_asyncio.fixture
async def connection():
    """A connection manager opened on a fresh in-memory store."""
    manager = ConnectionManager(name="test")
    await manager.open("memory://test")
    yield manager
    await manager.close()


@pytest_asyncio.fixture
async def user_model(registry, user_schema, connection):
    registry.register("User", user_schema)
    return ModelHandle.bind("User", connection, registry=registry)


@pytest_asyncio.fixture
async def appointment_model(registry, appointment_schema, connection):
    registry.register("Appointment", appointment_schema)
    return ModelHandle.bind("Appointment", connection, registry=registry)
