"""Versioned data upgrades.

Every upgrade is idempotent and nothing records which ones ran:
``run_upgrades`` applies the whole list again, and re-running is also how an
aborted upgrade is recovered.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List

from . import constants as c
from .config import AppConfig
from .errors import CmdbError, ValidationError
from .services.migrator import drop_field, ensure_index
from .storage import IndexSpec, Store

LOGGER = logging.getLogger("cmdb.migrator")

UpgradeHandler = Callable[[Store, AppConfig], None]


@dataclass(frozen=True)
class Upgrade:
    version: str
    description: str
    handler: UpgradeHandler


_REGISTRY: Dict[str, Upgrade] = {}


def register(version: str, description: str) -> Callable[[UpgradeHandler], UpgradeHandler]:
    def decorator(handler: UpgradeHandler) -> UpgradeHandler:
        if version in _REGISTRY:
            raise ValueError(f"upgrade {version} registered twice")
        _REGISTRY[version] = Upgrade(version, description, handler)
        return handler

    return decorator


def registered_upgrades() -> List[Upgrade]:
    return [_REGISTRY[version] for version in sorted(_REGISTRY)]


def run_upgrades(store: Store, config: AppConfig, only: str | None = None) -> List[Dict[str, str]]:
    upgrades = registered_upgrades()
    if only is not None:
        upgrades = [upgrade for upgrade in upgrades if upgrade.version == only]
        if not upgrades:
            raise ValidationError(f"unknown upgrade version {only}", key="version")

    applied: List[Dict[str, str]] = []
    for upgrade in upgrades:
        LOGGER.info("running upgrade %s: %s, rid: %s", upgrade.version, upgrade.description, store.ctx.rid)
        try:
            upgrade.handler(store, config)
        except CmdbError as exc:
            LOGGER.error("upgrade %s failed, err: %s, rid: %s", upgrade.version, exc, store.ctx.rid)
            raise
        store.commit()
        applied.append({"version": upgrade.version, "description": upgrade.description})
    return applied


@register("x20.10.16.11", "add bk_cloud_id index to hosts and cloud areas")
def add_cloud_id_index(store: Store, config: AppConfig) -> None:
    spec = IndexSpec(name="bk_cloud_id_1", keys={c.CLOUD_ID: 1}, unique=False, background=True)
    for collection in (c.TABLE_HOST, c.TABLE_PLAT):
        ensure_index(store, collection, spec)


@register("y3.9.202106301723", "drop the version field of set templates and sets")
def drop_set_template_version(store: Store, config: AppConfig) -> None:
    step = config.migration.step
    drop_field(store, c.TABLE_SET_TEMPLATE, c.FIELD_ID, c.SET_TEMPLATE_VERSION_LEGACY, step=step)
    drop_field(store, c.TABLE_SET, c.SET_ID, c.SET_TEMPLATE_VERSION, step=step)
