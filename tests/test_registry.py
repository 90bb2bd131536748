# tests/test_registry.py
"""Handler registry and the default handlers."""
from __future__ import annotations

import pytest

from backoffice_jobs.constants.job_types import JobTypes
from backoffice_jobs.models.jobs_model import Job
from backoffice_jobs.worker_main import build_registry
from backoffice_jobs.workers.job_handlers import (
    InventorySyncHandler,
    MenuSyncHandler,
    NotificationHandler,
)
from backoffice_jobs.workers.registry import HandlerRegistry


def _job(**kwargs) -> Job:
    defaults = dict(id="job-1", tenant_id="tenant-1", job_type="menu_sync", status="processing")
    defaults.update(kwargs)
    return Job(**defaults)


async def first(job):
    return "first"


async def second(job):
    return "second"


def test_register_and_lookup():
    registry = HandlerRegistry()
    registry.register("menu_sync", first)

    assert registry.get("menu_sync") is first
    assert registry.get("unknown") is None
    assert "menu_sync" in registry
    assert "unknown" not in registry
    assert len(registry) == 1
    assert registry.job_types() == ["menu_sync"]


def test_last_registration_wins():
    registry = HandlerRegistry()
    registry.register("menu_sync", first)
    registry.register("menu_sync", second)
    assert registry.get("menu_sync") is second
    assert len(registry) == 1


def test_register_validates_input():
    registry = HandlerRegistry()
    with pytest.raises(ValueError):
        registry.register("", first)
    with pytest.raises(TypeError):
        registry.register("menu_sync", "not callable")
    with pytest.raises(TypeError):
        registry.register_handler(first)


def test_default_registry_covers_known_job_types():
    registry = build_registry()
    assert sorted(registry.job_types()) == sorted(job_type.value for job_type in JobTypes)
    assert isinstance(registry.get("menu_sync"), MenuSyncHandler)
    assert isinstance(registry.get("inventory_sync"), InventorySyncHandler)
    assert isinstance(registry.get("send_notification"), NotificationHandler)


@pytest.mark.asyncio
async def test_menu_sync_handler():
    result = await MenuSyncHandler()(_job(payload={"channels": ["doordash"]}))
    assert result["synced"] is True
    assert result["tenant_id"] == "tenant-1"
    assert result["channels"] == ["doordash"]


@pytest.mark.asyncio
async def test_inventory_sync_handler_needs_an_item():
    handler = InventorySyncHandler()
    assert await handler(_job(job_type="inventory_sync", entity_id="item-3")) == {"updated": True, "item_id": "item-3"}
    with pytest.raises(ValueError):
        await handler(_job(job_type="inventory_sync"))


@pytest.mark.asyncio
async def test_notification_handler():
    result = await NotificationHandler()(_job(job_type="send_notification", payload={"type": "sms", "to": "+15550100"}))
    assert result == {"sent": True, "type": "sms", "to": "+15550100"}
