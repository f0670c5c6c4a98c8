"""Resolve the client factory named in settings."""

from __future__ import annotations

import importlib
from collections.abc import Mapping
from typing import Any

from media_orchestrator.config.settings import Settings
from media_orchestrator.storage.models import TaskKind


def load_clients(settings: Settings) -> dict[TaskKind, Any]:
    """Call ``settings.clients_factory`` and key its result by task kind.

    An empty factory path means no clients: every kind then reports itself as
    not configured.
    """
    path = settings.clients_factory.strip()
    if not path:
        return {}

    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ValueError(f"clients_factory must look like 'package.module:callable', got {path!r}")

    factory = getattr(importlib.import_module(module_name), attr)
    clients = factory(settings)
    if not isinstance(clients, Mapping):
        raise TypeError(f"{path} must return a mapping of task kind to client")
    return {TaskKind(kind): client for kind, client in clients.items()}
