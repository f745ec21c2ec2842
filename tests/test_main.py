import dataclasses
from datetime import date
from zoneinfo import ZoneInfoNotFoundError

import pytest

from conftest import FakeMetricsClient, row
from main import create_app
from utils import MetricsAPIError


def test_index(make_client):
    client, _ = make_client()
    resp = client.get('/')
    assert resp.status_code == 200
    assert 'Сервер запущен' in resp.get_data(as_text=True)


def test_get_crashes_returns_png(make_client):
    client, fake = make_client([
        row(date(2024, 3, 2), crashRate="0.0123"),
        row(date(2024, 3, 3), crashRate="0.015"),
    ])

    resp = client.get('/get-crashes')

    assert resp.status_code == 200
    assert resp.mimetype == 'image/png'
    assert resp.data.startswith(b"\x89PNG")
    assert len(fake.calls) == 1


def test_get_crashes_without_rows_renders_empty_chart(make_client):
    client, _ = make_client([])

    resp = client.get('/get-crashes')

    assert resp.status_code == 200
    assert resp.mimetype == 'image/png'
    assert resp.data.startswith(b"\x89PNG")


def test_get_crashes_malformed_value_is_500(make_client):
    client, _ = make_client([row(date(2024, 3, 2), crashRate="not-a-number")])

    resp = client.get('/get-crashes')

    assert resp.status_code == 500
    assert resp.mimetype == 'text/plain'
    assert 'not-a-number' in resp.get_data(as_text=True)


def test_get_crashes_upstream_failure_is_500(make_client):
    client, _ = make_client(MetricsAPIError("Reporting API error 403: denied"))

    resp = client.get('/get-crashes')

    assert resp.status_code == 500
    assert resp.get_data(as_text=True) == "Reporting API error 403: denied"


def test_get_crashes_writes_chart_file(tmp_path, settings):
    snapshot = tmp_path / "crash_rate_plot.png"
    settings = dataclasses.replace(settings, CHART_FILE=snapshot)
    app = create_app(settings, client=FakeMetricsClient([row(date(2024, 3, 2), crashRate="0.01")]))

    resp = app.test_client().get('/get-crashes')

    assert resp.status_code == 200
    assert snapshot.read_bytes() == resp.data


@pytest.mark.parametrize("previous, current, expected", [
    ([], [row(date(2024, 3, 9), crashRate7dUserWeighted="0.05")], [{"week": 1, "value": 5}]),
    ([], [], []),
    (
        [row(date(2024, 3, 2), crashRate7dUserWeighted="0.02")],
        [row(date(2024, 3, 9), crashRate7dUserWeighted="0.03")],
        [{"week": 0, "value": 2}, {"week": 1, "value": 3}],
    ),
])
def test_moving_avg_crashes(make_client, previous, current, expected):
    client, _ = make_client(previous, current)

    resp = client.get('/movingavg/crashes')

    assert resp.status_code == 200
    assert resp.mimetype == 'application/json'
    assert resp.get_json() == expected


def test_moving_avg_crashes_upstream_failure_is_500(make_client):
    client, _ = make_client([], MetricsAPIError("Reporting API request failed: timeout"))

    resp = client.get('/movingavg/crashes')

    assert resp.status_code == 500
    assert 'timeout' in resp.get_data(as_text=True)


def test_create_app_fails_fast_without_credentials(settings):
    with pytest.raises(FileNotFoundError):
        create_app(settings)


def test_create_app_fails_fast_on_unknown_timezone(settings):
    settings = dataclasses.replace(settings, REPORT_TIMEZONE="Mars/Olympus")
    with pytest.raises(ZoneInfoNotFoundError):
        create_app(settings, client=FakeMetricsClient())
