"""
Repository selection for the web adapter and CLI.

Prefer the Postgres repositories when a DSN is configured; otherwise fall back
to one shared `InMemoryStore` so every context sees the same data.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional
import logging

from eduflow.storage.config import database_dsn
from eduflow.storage.memory import InMemoryStore

logger = logging.getLogger("eduflow.storage")


@dataclass
class Repos:
    users: Any
    teaching: Any
    learning: Any


def memory_repos(store: Optional[InMemoryStore] = None) -> Repos:
    store = store or InMemoryStore()
    return Repos(users=store, teaching=store, learning=store)


def build_default_repos() -> Repos:
    dsn = database_dsn()
    if not dsn:
        logger.warning("No database configured; using in-memory store (data is lost on restart)")
        return memory_repos()
    from eduflow.identity_access.repo_db import DBUserRepo
    from eduflow.learning.repo_db import DBLearningRepo
    from eduflow.teaching.repo_db import DBTeachingRepo

    return Repos(users=DBUserRepo(dsn), teaching=DBTeachingRepo(dsn), learning=DBLearningRepo(dsn))


"""Lazy accessor so importing the web app never touches the database."""
_REPOS: Optional[Repos] = None


def get_repos() -> Repos:
    global _REPOS
    if _REPOS is None:
        _REPOS = build_default_repos()
    return _REPOS


def set_repos(repos: Optional[Repos]) -> None:
    """Allow tests to swap repositories (None re-resolves on next access)."""
    global _REPOS
    _REPOS = repos


def use_store(store: InMemoryStore) -> InMemoryStore:
    """Point every context at `store` and return it (test convenience)."""
    set_repos(memory_repos(store))
    return store


__all__ = ["Repos", "build_default_repos", "get_repos", "memory_repos", "set_repos", "use_store"]
