''' Turn downloaded pages into structured data.

The route list comes from the JavaScript data structure that backs the
schedule menu on RTD's website; it is scanned for text/url pairs here. The
schedule page itself is scraped by an external parser, whose raw output is
normalised with `normalise_schedule`.
'''

import logging
import re
from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import ValidationError

from .models import ParsedSchedule

logger = logging.getLogger(__name__)

# Signature of the external schedule page parser
SchedulePageParser = Callable[[bytes], Optional[Mapping[str, Any]]]

MENU_ENTRY = re.compile(rb'text:\s*"([^"]*)".*?url:\s*"([^"]*)"', re.DOTALL)
URL_QUERY = re.compile(r"\?(.+)$")


def parse_route_list(route_menu: bytes) -> Dict[str, str]:
    """
    Parse the route menu script into route name -> route key.

    The route key is the query string of the entry's schedule URL, which is
    what the schedule page expects to identify a route.

    Example:
        >>> parse_route_list(b'{text:"B", url:"/schedules/getSchedule.action?routeId=B"}')
        {'B': 'routeId=B'}
    """
    routes = {}
    for match in MENU_ENTRY.finditer(route_menu or b""):
        name = match.group(1).decode("utf-8", errors="replace").strip()
        url = match.group(2).decode("utf-8", errors="replace")
        key = URL_QUERY.search(url)
        if name and key:
            routes[name] = key.group(1)
    logger.debug(f"Parsed {len(routes)} routes from route menu")
    return routes


def normalise_schedule(raw: Optional[Mapping[str, Any]]) -> ParsedSchedule:
    """Validate the external parser's output. Anything unusable becomes an empty result."""
    if not raw:
        return ParsedSchedule()
    try:
        return ParsedSchedule.model_validate(dict(raw))
    except ValidationError as e:
        logger.warning(f"Schedule parser returned unusable data: {e}")
        return ParsedSchedule()
