"""Persist the route name -> Route mapping."""

import logging
from pathlib import Path
from typing import Dict, Optional

from .config import get_config
from .exceptions import CacheMiss
from .models import Route
from .storage import delete_record, read_record, write_record

logger = logging.getLogger(__name__)

ROUTES_FILE_NAME = "routes.msgpack"


class RouteCatalogStore:
    """The route catalog as a single versioned record of (name, key, directions)."""

    def __init__(self, cache_dir: Optional[Path] = None, version: Optional[int] = None):
        self.cache_dir = Path(cache_dir or get_config("CACHE_DIR"))
        self.version = version if version is not None else get_config("CACHE_VERSION")
        self.path = self.cache_dir / ROUTES_FILE_NAME

    def load(self) -> Dict[str, Route]:
        """Load the catalog.

        Raises:
            CacheMiss: If nothing usable is on disk
        """
        record = read_record(self.path, self.version)
        try:
            routes = {
                name: Route(name=name, key=key, directions=directions)
                for name, key, directions in record["routes"]
            }
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding malformed route catalog {self.path}: {e}")
            delete_record(self.path)
            raise CacheMiss(f"{self.path} is malformed") from e

        logger.info(f"Loaded {len(routes)} routes from {self.path}")
        return routes

    def save(self, routes: Dict[str, Route]) -> None:
        rows = [[r.name, r.key, r.directions] for r in sorted(routes.values(), key=lambda r: r.name)]
        write_record(self.path, self.version, {"routes": rows})
        logger.info(f"Saved {len(rows)} routes to {self.path}")


def set_directions(routes: Dict[str, Route], name: str, directions: str) -> bool:
    """Record discovered directions for a route. The first value recorded wins.

    Returns:
        True if the route was updated
    """
    route = routes.get(name)
    if route is None or route.directions or not directions:
        return False
    route.directions = directions
    return True
