import pytest

from tests.fakes import FakeClock, client


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def berlin():
    return client(
        "c1", "Spree Logistics GmbH", "Alexanderplatz 1", "10178", "Berlin", "Germany",
        lat=52.5219, lon=13.4132, embedding=[0.9, 0.1, 0.0, 0.0],
    )


@pytest.fixture
def potsdam():
    return client(
        "c2", "Havel Bakery", "Brandenburger Str. 5", "14467", "Potsdam", "Germany",
        lat=52.4009, lon=13.0591, embedding=[0.8, 0.2, 0.0, 0.0],
    )


@pytest.fixture
def hamburg():
    return client(
        "c3", "Elbe Traders", "Jungfernstieg 7", "20354", "Hamburg", "Germany",
        embedding=[0.0, 0.0, 1.0, 0.0],
    )
