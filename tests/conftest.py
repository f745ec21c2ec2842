from datetime import date
from pathlib import Path

import pytest

from config import Config
from main import create_app
from utils import MetricRow


def row(day: date, **metrics) -> MetricRow:
    return MetricRow(period_start=day, metrics=metrics)


class FakeMetricsClient:
    """Отдаёт заранее заданные ответы по очереди, исключения пробрасывает."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def query(self, metric_set, window, metrics):
        self.calls.append((metric_set, window, list(metrics)))
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def post(self, url, json=None, timeout=None):
        self.requests.append({"url": url, "json": json, "timeout": timeout})
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def settings(tmp_path: Path) -> Config:
    return Config(
        CREDENTIALS_FILE=tmp_path / "service-account.json",
        PROJECT_ID="apps/level.game",
        REPORT_TIMEZONE="UTC",
        CHART_FILE=None,
    )


@pytest.fixture
def make_client(settings):
    def _make(*responses):
        fake = FakeMetricsClient(*responses)
        app = create_app(settings, client=fake)
        return app.test_client(), fake
    return _make
