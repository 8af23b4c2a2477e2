"""
Answer schedule queries from the local cache, fetching from RTD when needed.

The coordinator runs on a single event loop. ``resolve`` never blocks: it
either answers from the cache or parks the query on a fetch job and returns
``PENDING``. Jobs are keyed by their FetchTarget, so equivalent queries share
one fetch. When a fetch completes its data is persisted and every query that
was waiting on it is resolved again, which now answers from the cache.
"""

import asyncio
from datetime import date, datetime
from functools import partial
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

import pytz

from .config import get_config
from .day_types import day_for
from .exceptions import CacheMiss, InvalidQueryError
from .models import DayType, Direction, FetchJob, FetchKind, FetchTarget, Route
from .parsers import SchedulePageParser, normalise_schedule, parse_route_list
from .queries import DirectionsQuery, ParsedQuery, RouteListQuery, ScheduleQuery, parse_query
from .route_catalog import RouteCatalogStore, set_directions
from .schedule_store import ScheduleStore
from .transport import Transport
from .validity import Observation, ValidityTracker

logger = logging.getLogger(__name__)

ResolvedCallback = Callable[[str, Any], None]


class _Pending:
    def __repr__(self) -> str:
        return "PENDING"


PENDING = _Pending()


def local_today() -> date:
    """Today's date in RTD's timezone."""
    return datetime.now(pytz.timezone(get_config("TIMEZONE"))).date()


class FetchCoordinator:
    def __init__(
        self,
        transport: Transport,
        parse_schedule: SchedulePageParser,
        *,
        route_store: Optional[RouteCatalogStore] = None,
        schedule_store: Optional[ScheduleStore] = None,
        validity: Optional[ValidityTracker] = None,
        parse_routes: Callable[[bytes], Dict[str, str]] = parse_route_list,
        today: Callable[[], date] = local_today,
    ):
        self.transport = transport
        self.parse_schedule = parse_schedule
        self.parse_routes = parse_routes
        self.route_store = route_store or RouteCatalogStore()
        self.schedule_store = schedule_store or ScheduleStore()
        self.validity = validity or ValidityTracker(get_config("CACHE_DIR"))
        self.today = today

        self.route_list_url = get_config("ROUTE_LIST_URL")
        self.schedule_url = get_config("SCHEDULE_URL")
        self.probe_route = get_config("PROBE_ROUTE")
        self.probe_route_key = get_config("PROBE_ROUTE_KEY")

        # One job per target; each job knows the queries waiting on it
        self._jobs: Dict[FetchTarget, FetchJob] = {}
        self._routes: Dict[str, Route] = {}
        # Directions learned for routes the catalog did not know yet
        self._unplaced_directions: Dict[str, str] = {}
        # Queries answered at least once, with their latest result
        self._published: Dict[str, Any] = {}
        # Queries whose fetch failed, waiting for something to trigger them again
        self._parked: Set[str] = set()
        self._listeners: List[ResolvedCallback] = []
        self._waiters: Dict[str, List[asyncio.Future]] = {}

    # -- upward interface ---------------------------------------------------

    def subscribe(self, callback: ResolvedCallback) -> None:
        """Call ``callback(query, result)`` whenever a query is (re)answered asynchronously."""
        self._listeners.append(callback)

    def unsubscribe(self, callback: ResolvedCallback) -> None:
        self._listeners.remove(callback)

    def resolve(self, query: str) -> Any:
        """
        Answer a query from the cache, or start (or join) the fetch that will.

        Returns:
            The result, or PENDING if it will be delivered to subscribers later

        Raises:
            InvalidQueryError: If the query is malformed or names an unknown route
        """
        result = self._resolve(query, parse_query(query))
        if result is not PENDING:
            self._publish(query, result, notify=False)
        return result

    async def fetch(self, query: str) -> Any:
        """Resolve a query, waiting for its fetch if necessary.

        A failed fetch leaves the query parked, so callers that cannot wait
        forever should apply their own timeout.
        """
        # Registered first, since a transport may complete before resolve returns
        future = asyncio.get_running_loop().create_future()
        self._waiters.setdefault(query, []).append(future)
        try:
            self.resolve(query)
        except Exception:
            waiters = self._waiters.get(query, [])
            if future in waiters:
                waiters.remove(future)
            if not waiters:
                self._waiters.pop(query, None)
            raise
        return await future

    def release(self, query: str) -> None:
        """Stop tracking a query: it is no longer re-published or waiting on any fetch.

        Callers still awaiting ``fetch`` for the query are cancelled.
        """
        self._published.pop(query, None)
        self._parked.discard(query)
        for job in self._jobs.values():
            job.pending_queries.discard(query)
        for future in self._waiters.pop(query, []):
            future.cancel()

    def retry_parked(self) -> None:
        """Resolve again every query left waiting by a failed fetch."""
        parked, self._parked = self._parked, set()
        if parked:
            logger.info(f"Retrying {len(parked)} parked queries")
        self._reresolve(parked)

    def result(self, query: str) -> Any:
        """The last result published for a query, or PENDING."""
        return self._published.get(query, PENDING)

    @property
    def routes(self) -> Dict[str, Route]:
        return self._routes

    @property
    def outstanding(self) -> List[FetchTarget]:
        return list(self._jobs)

    @property
    def parked(self) -> Set[str]:
        return set(self._parked)

    # -- resolution -----------------------------------------------------------

    def _resolve(self, query: str, parsed: ParsedQuery) -> Any:
        today = self.today()

        # Nothing is answered from the cache until RTD has been asked today
        if not self.validity.is_fresh_today(today):
            return self._wait_for_freshness(query)

        if not self._routes and not self._load_routes():
            return self._wait_on(query, FetchTarget.route_catalog())

        if isinstance(parsed, RouteListQuery):
            return sorted(self._routes)

        route = self._routes.get(parsed.route)
        if route is None:
            raise InvalidQueryError(f"Unknown route {parsed.route!r} in query {query!r}")

        if isinstance(parsed, DirectionsQuery):
            if route.directions:
                return route.directions
            # The discovery fetch is cached but revealed no direction
            target = FetchTarget.timetable(route.name, DayType.WEEKDAY, Direction.UNSPECIFIED)
            if self._cached_timetable(target) is not None:
                return route.directions
            return self._wait_on(query, target)

        if isinstance(parsed, ScheduleQuery):
            target = FetchTarget.timetable(route.name, day_for(parsed.day, today), parsed.direction)
            timetable = self._cached_timetable(target)
            if timetable is not None:
                return timetable
            return self._wait_on(query, target)

        raise InvalidQueryError(f"Unsupported query {query!r}")

    def _wait_for_freshness(self, query: str) -> Any:
        # Any outstanding timetable fetch will report the valid-as-of date
        for job in self._jobs.values():
            if job.target.kind is FetchKind.TIMETABLE:
                return self._join(query, job)
        target = FetchTarget.timetable(self.probe_route, DayType.WEEKDAY, Direction.UNSPECIFIED)
        logger.info(f"Schedules not confirmed today, probing with {target}")
        return self._wait_on(query, target)

    def _wait_on(self, query: str, target: FetchTarget) -> Any:
        job = self._jobs.get(target)
        if job is not None:
            return self._join(query, job)
        job = FetchJob(target=target, url=self._url_for(target))
        self._jobs[target] = job
        self._join(query, job)
        self._dispatch(job)
        return PENDING

    def _join(self, query: str, job: FetchJob) -> Any:
        # A query waits on exactly one job at a time
        for other in self._jobs.values():
            if other is not job:
                other.pending_queries.discard(query)
        self._parked.discard(query)
        job.pending_queries.add(query)
        logger.debug(f"{query} waiting on {job.target} ({len(job.pending_queries)} waiting)")
        return PENDING

    def _load_routes(self) -> bool:
        try:
            self._routes = self.route_store.load()
        except CacheMiss as e:
            logger.debug(f"Route catalog not cached: {e}")
            return False
        if self._place_directions():
            self.route_store.save(self._routes)
        return bool(self._routes)

    def _place_directions(self) -> bool:
        updated = False
        for name in [n for n in self._unplaced_directions if n in self._routes]:
            updated |= set_directions(self._routes, name, self._unplaced_directions.pop(name))
        return updated

    def _cached_timetable(self, target: FetchTarget):
        try:
            return self.schedule_store.load(target.route, target.day, target.direction, self.validity.valid_as_of)
        except CacheMiss:
            return None

    # -- fetching -------------------------------------------------------------

    def _dispatch(self, job: FetchJob) -> None:
        logger.info(f"Fetching {job.target} from {job.url}")
        try:
            handle = self.transport.dispatch(
                job.url, partial(self._data_received, job), partial(self._fetch_finished, job)
            )
        except Exception as e:
            logger.error(f"Could not dispatch {job.target}: {e}", exc_info=True)
            self._fetch_finished(job, e)
            return
        # The job may already have completed inside dispatch
        if self._jobs.get(job.target) is job:
            job.handle = handle

    def _url_for(self, target: FetchTarget) -> str:
        if target.kind is FetchKind.ROUTE_CATALOG:
            return self.route_list_url

        route = self._routes.get(target.route)
        key = route.key if route else self.probe_route_key
        url = f"{self.schedule_url}?{key}&serviceType={target.day.value}"
        if target.direction is not Direction.UNSPECIFIED:
            url += f"&direction={target.direction.value}"
        return url

    def _data_received(self, job: FetchJob, chunk: bytes) -> None:
        job.data += chunk

    def _fetch_finished(self, job: FetchJob, error: Optional[Exception]) -> None:
        if self._jobs.get(job.target) is job:
            del self._jobs[job.target]

        if error is not None:
            logger.warning(f"Fetch of {job.target} failed, parking {len(job.pending_queries)} queries: {error}")
            self._parked |= job.pending_queries
            return

        if job.target.kind is FetchKind.ROUTE_CATALOG:
            self._route_list_finished(job)
        else:
            self._timetable_finished(job)

    def _route_list_finished(self, job: FetchJob) -> None:
        try:
            names = self.parse_routes(bytes(job.data))
        except Exception as e:
            logger.error(f"Route list parser failed: {e}", exc_info=True)
            self._parked |= job.pending_queries
            return
        if not names:
            logger.warning("Route list was empty or unparsable, keeping the current catalog")
            self._parked |= job.pending_queries
            return

        # Keep directions already discovered for routes whose key is unchanged
        routes = {}
        for name, key in names.items():
            known = self._routes.get(name)
            directions = known.directions if known and known.key == key else ""
            routes[name] = Route(name=name, key=key, directions=directions)
        self._routes = routes
        self._place_directions()
        self.route_store.save(routes)
        logger.info(f"Route catalog updated with {len(routes)} routes")

        self._reresolve(job.pending_queries)

    def _timetable_finished(self, job: FetchJob) -> None:
        target = job.target
        try:
            parsed = normalise_schedule(self.parse_schedule(bytes(job.data)))
        except Exception as e:
            logger.error(f"Schedule parser failed on {target}: {e}", exc_info=True)
            self._parked |= job.pending_queries
            return

        # Data of unknown validity could never be matched on read
        if parsed.valid_as_of is None:
            logger.warning(f"No valid-as-of date in {target}, ignoring the page")
            self._parked |= job.pending_queries
            return

        queries = set(job.pending_queries)
        observation = self.validity.observe_valid_as_of(parsed.valid_as_of)
        self.validity.record_check(self.today())
        if observation is Observation.CHANGED:
            logger.info(f"Republishing {len(self._published)} results for the new schedules")
            queries |= set(self._published)
            self._published.clear()

        if parsed.directions:
            if target.route not in self._routes:
                self._unplaced_directions.setdefault(target.route, parsed.directions)
            elif set_directions(self._routes, target.route, parsed.directions):
                logger.info(f"Route {target.route} runs {parsed.directions}")
                self.route_store.save(self._routes)

        self.schedule_store.save(target.route, target.day, target.direction, parsed.valid_as_of, parsed.stops)

        self._reresolve(queries)

    def _reresolve(self, queries: Iterable[str]) -> None:
        for query in sorted(queries):
            try:
                result = self._resolve(query, parse_query(query))
            except InvalidQueryError as e:
                logger.warning(f"Dropping query: {e}")
                self._fail_waiters(query, e)
                self.release(query)
                continue
            if result is not PENDING:
                self._publish(query, result)

    def _publish(self, query: str, result: Any, notify: bool = True) -> None:
        self._published[query] = result
        for future in self._waiters.pop(query, []):
            if not future.done():
                future.set_result(result)
        if not notify:
            return
        for callback in list(self._listeners):
            try:
                callback(query, result)
            except Exception as e:
                logger.error(f"Subscriber failed on {query}: {e}", exc_info=True)

    def _fail_waiters(self, query: str, error: Exception) -> None:
        for future in self._waiters.pop(query, []):
            if not future.done():
                future.set_exception(error)
