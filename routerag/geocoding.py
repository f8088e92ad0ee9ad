"""Address resolution via the Nominatim (OpenStreetMap) geocoder.

Provides:
- NominatimGeocoder: free-text address -> (lat, lon) or None on no match.
  Transport and payload failures raise GeocodingError.
- AddressResolver: sequentially geocodes entities lacking coordinates, writes the
  results back to the entity store, and partitions the batch into updated, failed
  and skipped entries. A minimum delay separates the start of successive geocoding
  calls, whether or not the previous call succeeded.

Nominatim's usage policy allows at most one request per second and requires an
identifying User-Agent.
"""
import logging
import time
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import requests
from sqlalchemy.exc import SQLAlchemyError

from routerag.domains import DomainProfile
from routerag.entities import EntityRecord
from routerag.errors import GeocodingError, PersistenceError
from routerag.schemas import FailedEntity, ResolutionReport, UpdatedEntity

logger = logging.getLogger(__name__)


class NominatimGeocoder:
    def __init__(
        self,
        url: str,
        user_agent: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {"User-Agent": user_agent, "Accept": "application/json"}

    def geocode(self, address: str) -> Optional[Tuple[float, float]]:
        """Resolve a free-text address.

        Args:
            address: Display address, e.g. "Main St 1, 10115 Berlin, Germany".

        Returns:
            Optional[Tuple[float, float]]: (latitude, longitude) of the best match, or
                None when the geocoder has no match.

        Raises:
            GeocodingError: On HTTP/transport errors or an unexpected payload.
        """
        params = {"q": address, "format": "json", "limit": 1}
        try:
            resp = self.session.get(self.url, params=params, headers=self.headers, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise GeocodingError(f"geocoding request failed: {e}") from e
        if not data:
            return None
        try:
            return float(data[0]["lat"]), float(data[0]["lon"])
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise GeocodingError(f"unexpected geocoder payload: {data!r}") from e


class AddressResolver:
    """Geocode a batch of entities one at a time, honoring a minimum inter-call delay.

    Args:
        geocoder: Object with ``geocode(address) -> Optional[(lat, lon)]``.
        store: Entity store with ``update_coordinates`` and ``get_many``.
        profile: Domain profile used to format display addresses.
        min_delay: Minimum seconds between the starts of two geocoding calls.
        sleep: Sleep function (injectable for tests).
        clock: Monotonic clock (injectable for tests).
    """

    def __init__(
        self,
        geocoder,
        store,
        profile: DomainProfile,
        min_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.geocoder = geocoder
        self.store = store
        self.profile = profile
        self.min_delay = min_delay
        self._sleep = sleep
        self._clock = clock
        self._last_call: Optional[float] = None

    def _throttle(self) -> None:
        if self._last_call is not None:
            wait = self.min_delay - (self._clock() - self._last_call)
            if wait > 0:
                self._sleep(wait)
        self._last_call = self._clock()

    def resolve(self, entities: Iterable[EntityRecord]) -> ResolutionReport:
        """Geocode every entity that lacks coordinates.

        Resolved coordinates are persisted and also set on the passed records.
        Failures are recorded in the report; the batch is never aborted.
        """
        report = ResolutionReport()
        for ent in entities:
            if ent.has_coordinates:
                report.skipped.append(ent.id)
                continue

            address = self.profile.display_address(ent)
            if not address:
                report.failed.append(FailedEntity(id=ent.id, reason="no address fields"))
                logger.warning("Entity %s has no address to geocode", ent.id)
                continue

            logger.info("Geocoding %s: %s", ent.id, address)
            self._throttle()
            try:
                coords = self.geocoder.geocode(address)
            except GeocodingError as e:
                report.failed.append(FailedEntity(id=ent.id, address=address, reason=str(e)))
                logger.warning("Failed to geocode %s (%s): %s", ent.id, address, e)
                continue
            if coords is None:
                report.failed.append(FailedEntity(id=ent.id, address=address, reason="no match"))
                logger.warning("No geocoding match for %s (%s)", ent.id, address)
                continue

            lat, lon = coords
            try:
                self.store.update_coordinates(ent.id, lat, lon)
            except PersistenceError as e:
                report.failed.append(FailedEntity(id=ent.id, address=address, reason=str(e)))
                logger.warning("Could not persist coordinates for %s: %s", ent.id, e)
                continue
            ent.latitude, ent.longitude = lat, lon
            report.updated.append(UpdatedEntity(id=ent.id, address=address, lat=lat, lon=lon))
            logger.info("Updated %s with lat=%s, lon=%s", ent.id, lat, lon)

        logger.info(
            "Resolution batch done: updated=%d failed=%d skipped=%d",
            len(report.updated), len(report.failed), len(report.skipped),
        )
        return report

    def resolve_ids(self, ids: Iterable[str]) -> Tuple[List[EntityRecord], ResolutionReport]:
        """Fetch entities by id (order preserved), then resolve them.

        Unknown ids are recorded as failed with reason "not found".

        Returns:
            Tuple[List[EntityRecord], ResolutionReport]: Found entities in input order
                (with any new coordinates applied) and the batch report.
        """
        ids = list(ids)
        try:
            found: Dict[str, EntityRecord] = self.store.get_many(ids)
        except SQLAlchemyError as e:
            logger.error("Could not load entities for resolution: %s", e)
            return [], ResolutionReport(failed=[FailedEntity(id=i, reason=f"store error: {e}") for i in ids])
        entities = [found[i] for i in ids if i in found]
        report = self.resolve(entities)
        missing = [FailedEntity(id=i, reason="not found") for i in ids if i not in found]
        for m in missing:
            logger.warning("Referenced entity %s not found in %s", m.id, self.profile.table)
        report.failed = missing + report.failed
        return entities, report
