"""Route geometry via OSRM and the map deep-link fallback.

Provides:
- OsrmRoutingClient: ordered (lat, lon) pairs -> GeoJSON route geometry, or None
  when OSRM finds no route. Transport failures raise RoutingError.
- build_fallback_url: Google Maps directions link from origin, destination and the
  interior stops in order.
- RouteBuilder: asks the routing engine for geometry only when there are at least
  two waypoints; any routing failure yields None.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote

import requests

from routerag.entities import ResolvedWaypoint
from routerag.errors import RoutingError

logger = logging.getLogger(__name__)

MAPS_DIR_URL = "https://www.google.com/maps/dir/?api=1"


class OsrmRoutingClient:
    def __init__(
        self,
        base_url: str,
        profile: str = "driving",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.profile = profile
        self.timeout = timeout
        self.session = session or requests.Session()

    def route(self, coordinates: Sequence[Tuple[float, float]]) -> Optional[Dict[str, Any]]:
        """Request the full route geometry for (lat, lon) pairs, visited in order.

        Returns:
            Optional[Dict[str, Any]]: GeoJSON LineString of the first route, or None
                when OSRM reports no route.

        Raises:
            RoutingError: On HTTP/transport errors or a non-JSON body.
        """
        # OSRM expects lon,lat
        coords = ";".join(f"{lon},{lat}" for lat, lon in coordinates)
        url = f"{self.base_url}/route/v1/{self.profile}/{coords}"
        try:
            resp = self.session.get(
                url, params={"overview": "full", "geometries": "geojson"}, timeout=self.timeout
            )
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise RoutingError(f"routing request failed: {e}") from e
        if not isinstance(data, dict) or data.get("code") != "Ok" or not data.get("routes"):
            logger.info("OSRM returned no route: %s", data.get("code") if isinstance(data, dict) else data)
            return None
        route = data["routes"][0]
        if not isinstance(route, dict):
            raise RoutingError(f"unexpected routing payload: {route!r}")
        return route.get("geometry")


def _encode(address: str) -> str:
    # same character set encodeURIComponent leaves alone
    return quote(address, safe="!'()*-._~")


def build_fallback_url(waypoints: Sequence[ResolvedWaypoint], travel_mode: str = "driving") -> str:
    """Build a directions deep link for an ordered list of stops.

    With one waypoint, origin and destination are the same address. With none,
    an empty string is returned.
    """
    if not waypoints:
        return ""
    origin = _encode(waypoints[0].address)
    destination = _encode(waypoints[-1].address)
    url = f"{MAPS_DIR_URL}&origin={origin}&destination={destination}"
    interior = [_encode(w.address) for w in waypoints[1:-1]]
    if interior:
        url += "&waypoints=" + "|".join(interior)
    return url + f"&travelmode={travel_mode}"


class RouteBuilder:
    """Synthesize route geometry for ordered waypoints.

    Args:
        client: Object with ``route(coordinates) -> Optional[geometry]``.
    """

    def __init__(self, client):
        self.client = client

    def build(self, waypoints: List[ResolvedWaypoint]) -> Optional[Dict[str, Any]]:
        if len(waypoints) < 2:
            logger.info("Skipping route geometry: %d waypoint(s)", len(waypoints))
            return None
        coords = [(w.latitude, w.longitude) for w in waypoints]
        try:
            return self.client.route(coords)
        except RoutingError as e:
            logger.warning("Route geometry unavailable: %s", e)
            return None
