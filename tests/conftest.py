"""Shared pytest fixtures."""

from __future__ import annotations

import os

import pytest

from pmassist.ai.orchestration.services.container import Services, create_services
from pmassist.ai.orchestration.tool_dispatcher import ToolDispatcher
from pmassist.ai.orchestration.types import SessionContext
from pmassist.ai.tools.tool_registry import ToolRegistry
from pmassist.ai.tools.tool_wiring import build_default_registry
from pmassist.data.store import InMemoryDataStore
from pmassist.services.settings import Settings

from tests.helpers import FakeClock, RecordingSleep, TODAY, make_context, seed_records


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("PMASSIST_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def store() -> InMemoryDataStore:
    return InMemoryDataStore(seed_records())


@pytest.fixture
def settings() -> Settings:
    return Settings(environment="test")


@pytest.fixture
def services(settings: Settings, clock: FakeClock, sleep: RecordingSleep) -> Services:
    return create_services(settings, clock=clock, sleep=sleep)


@pytest.fixture
def registry() -> ToolRegistry:
    return build_default_registry()


@pytest.fixture
def dispatcher(registry: ToolRegistry, store: InMemoryDataStore, services: Services) -> ToolDispatcher:
    return ToolDispatcher(registry, store, services, today=lambda: TODAY)


@pytest.fixture
def admin_context() -> SessionContext:
    return make_context("admin", user_id="user-admin", display_name="Ada Admin")


@pytest.fixture
def pm_context() -> SessionContext:
    return make_context("supplier_pm", user_id="user-carol", resource_id="res-carol", display_name="Carol Clark")


@pytest.fixture
def contributor_context() -> SessionContext:
    return make_context("contributor", user_id="user-alice", resource_id="res-alice", display_name="Alice Adams")


@pytest.fixture
def other_contributor_context() -> SessionContext:
    return make_context("contributor", user_id="user-bob", resource_id="res-bob", display_name="Bob Brown")


@pytest.fixture
def viewer_context() -> SessionContext:
    return make_context("viewer", user_id="user-viewer")
