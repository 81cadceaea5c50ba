"""Route Dispatcher - fixed prefix table mapping URL prefixes to collaborator routers.

Invariants:
    - Only prefixes in COLLABORATOR_PREFIXES can be mounted; anything else is a ValueError
    - Each prefix is mounted at most once
    - No business logic here; collaborators own their authorization beyond session attachment
    - Unmatched requests fall through to FastAPI's 404
"""

import logging
from collections.abc import Mapping

from fastapi import APIRouter, FastAPI

logger = logging.getLogger(__name__)

COLLABORATOR_PREFIXES: tuple[str, ...] = (
    "/auth",
    "/age-verification",
    "/i18n",
    "/models",
    "/content",
    "/reports",
    "/purchase",
    "/billing",
    "/comments",
    "/likes",
    "/notifications",
    "/admin",
    "/recommendations",
)


def mount_collaborators(
    app: FastAPI, routers: Mapping[str, APIRouter | list[APIRouter]],
) -> list[str]:
    """Include each collaborator router under its prefix. Returns the mounted prefixes."""
    unknown = sorted(set(routers) - set(COLLABORATOR_PREFIXES))
    if unknown:
        raise ValueError(f"Unknown collaborator prefix(es): {', '.join(unknown)}")

    mounted = []
    for prefix in COLLABORATOR_PREFIXES:
        entry = routers.get(prefix)
        if entry is None:
            continue
        for router in entry if isinstance(entry, list) else [entry]:
            app.include_router(router, prefix=prefix)
        mounted.append(prefix)

    missing = [p for p in COLLABORATOR_PREFIXES if p not in mounted]
    if missing:
        logger.info(f"Collaborators not mounted (404): {', '.join(missing)}")
    return mounted
