from urllib.parse import parse_qs, urlsplit

import pytest
import requests

from routerag.entities import ResolvedWaypoint
from routerag.errors import RoutingError
from routerag.routing import OsrmRoutingClient, RouteBuilder, build_fallback_url
from tests.fakes import FakeRouter

LINE = {"type": "LineString", "coordinates": [[13.41, 52.52], [13.06, 52.40]]}

A = ResolvedWaypoint("a", "Alexanderplatz 1, 10178 Berlin, Germany", 52.52, 13.41)
B = ResolvedWaypoint("b", "Brandenburger Str. 5, 14467 Potsdam, Germany", 52.40, 13.06)
C = ResolvedWaypoint("c", "Jungfernstieg 7, 20354 Hamburg, Germany", 53.55, 9.99)
D = ResolvedWaypoint("d", "Marienplatz 1, 80331 Munich, Germany", 48.14, 11.58)


def test_single_waypoint_does_not_call_engine():
    router = FakeRouter(LINE)
    assert RouteBuilder(router).build([A]) is None
    assert RouteBuilder(router).build([]) is None
    assert router.calls == []


def test_two_waypoints_call_engine_once():
    router = FakeRouter(LINE)
    assert RouteBuilder(router).build([A, B]) == LINE
    assert router.calls == [[(52.52, 13.41), (52.40, 13.06)]]


def test_routing_failure_yields_none():
    router = FakeRouter(error=RoutingError("timeout"))
    assert RouteBuilder(router).build([A, B]) is None
    assert len(router.calls) == 1


def test_no_route_yields_none():
    assert RouteBuilder(FakeRouter(None)).build([A, B, C]) is None


def test_fallback_url_orders_origin_stops_destination():
    url = build_fallback_url([A, B, C, D])
    qs = parse_qs(urlsplit(url).query)

    assert url.startswith("https://www.google.com/maps/dir/?api=1&")
    assert qs["origin"] == [A.address]
    assert qs["destination"] == [D.address]
    assert qs["waypoints"] == [f"{B.address}|{C.address}"]
    assert qs["travelmode"] == ["driving"]


def test_fallback_url_two_waypoints_has_no_stops():
    url = build_fallback_url([A, B], travel_mode="walking")
    qs = parse_qs(urlsplit(url).query)
    assert "waypoints" not in qs
    assert qs["travelmode"] == ["walking"]


def test_fallback_url_single_waypoint_and_empty():
    qs = parse_qs(urlsplit(build_fallback_url([A])).query)
    assert qs["origin"] == qs["destination"] == [A.address]
    assert build_fallback_url([]) == ""


def test_fallback_url_is_deterministic():
    assert build_fallback_url([A, B, C]) == build_fallback_url([A, B, C])


class _Resp:
    def __init__(self, payload):
        self.payload = payload

    def json(self):
        return self.payload


class _Session:
    def __init__(self, payload=None, error=None):
        self.payload = payload
        self.error = error
        self.urls = []

    def get(self, url, params=None, timeout=None):
        self.urls.append((url, params))
        if self.error:
            raise self.error
        return _Resp(self.payload)


def test_osrm_client_builds_lon_lat_path():
    session = _Session({"code": "Ok", "routes": [{"geometry": LINE, "distance": 30000.0}]})
    client = OsrmRoutingClient("http://osrm.local/", session=session)

    assert client.route([(52.52, 13.41), (52.40, 13.06)]) == LINE
    url, params = session.urls[0]
    assert url == "http://osrm.local/route/v1/driving/13.41,52.52;13.06,52.4"
    assert params == {"overview": "full", "geometries": "geojson"}


@pytest.mark.parametrize("payload", [{"code": "NoRoute", "routes": []}, {"code": "Ok", "routes": []}, []])
def test_osrm_client_no_route(payload):
    assert OsrmRoutingClient("http://osrm.local", session=_Session(payload)).route([(0, 0), (1, 1)]) is None


def test_osrm_client_transport_error():
    client = OsrmRoutingClient("http://osrm.local", session=_Session(error=requests.Timeout("slow")))
    with pytest.raises(RoutingError):
        client.route([(0, 0), (1, 1)])


def test_osrm_client_malformed_route_entry():
    client = OsrmRoutingClient("http://osrm.local", session=_Session({"code": "Ok", "routes": [["13.4,52.5"]]}))
    with pytest.raises(RoutingError):
        client.route([(0, 0), (1, 1)])
    assert RouteBuilder(client).build([A, B]) is None
