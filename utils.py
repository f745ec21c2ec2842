"""
Главные функции приложения: авторизация в Play Developer Reporting API,
запросы метрик и построение отчётов по крашам.
"""

import dataclasses
import io
import json
import logging
from datetime import date, datetime, timedelta, tzinfo
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import matplotlib.dates as mdates
import requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import service_account
from matplotlib.figure import Figure
from PIL import Image

logger = logging.getLogger(__name__)

PLAY_REPORTING_SCOPE = "https://www.googleapis.com/auth/playdeveloperreporting"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
DEFAULT_API_URL = "https://playdeveloperreporting.googleapis.com"

CRASH_RATE_METRIC_SET = "crashRateMetricSet"
CRASH_RATE = "crashRate"
CRASH_RATE_7D_USER_WEIGHTED = "crashRate7dUserWeighted"

DAILY = "DAILY"
CHART_DATE_FORMAT = "%d/%m/%Y"


# -- ошибки
class ReportError(Exception):
    pass


class CredentialsError(ReportError):
    pass


class MetricsAPIError(ReportError):
    pass


class MetricValueError(ReportError):
    pass


class ChartError(ReportError):
    pass


# -- модели данных
@dataclasses.dataclass(frozen=True)
class TimeWindow:
    start: date
    end: date
    granularity: str = DAILY

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"Window start {self.start} is after end {self.end}")

    def to_timeline_spec(self) -> dict:
        return {
            "aggregationPeriod": self.granularity,
            "startTime": _date_time(self.start),
            "endTime": _date_time(self.end),
        }


@dataclasses.dataclass(frozen=True)
class MetricRow:
    period_start: date
    metrics: Dict[str, str] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass(frozen=True)
class TrendPoint:
    timestamp: date
    value: float


@dataclasses.dataclass(frozen=True)
class ComparisonEntry:
    week: int
    value: float

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)


def _date_time(day: date) -> dict:
    return {"year": day.year, "month": day.month, "day": day.day}


# -- авторизация
def load_credentials(path, scope: str = PLAY_REPORTING_SCOPE) -> service_account.Credentials:
    """
    Читает JSON сервисного аккаунта (client_email + private_key) и возвращает
    учётные данные с одной областью доступа. Токены обновляются автоматически
    при использовании через AuthorizedSession.
    """
    info = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(info, dict):
        raise CredentialsError(f"{path}: expected a JSON object")

    email = info.get("client_email")
    private_key = info.get("private_key")
    if not email or not private_key:
        raise CredentialsError(f"{path}: client_email and private_key are required")

    logger.info("Client email: %s", email)
    return service_account.Credentials.from_service_account_info(
        {"client_email": email, "private_key": private_key, "token_uri": GOOGLE_TOKEN_URI},
        scopes=[scope],
    )


# -- клиент API
def _parse_row(raw: dict) -> MetricRow:
    try:
        start = raw["startTime"]
        period_start = date(int(start["year"]), int(start["month"]), int(start["day"]))
        metrics = {}
        for metric in raw.get("metrics", []):
            decimal_value = metric.get("decimalValue")
            if decimal_value is None:
                continue
            metrics[metric["metric"]] = decimal_value["value"]
    except (KeyError, TypeError, ValueError) as e:
        raise MetricsAPIError(f"Malformed metrics row: {raw!r}") from e
    return MetricRow(period_start=period_start, metrics=metrics)


class MetricsClient:
    def __init__(self, session: requests.Session, project_id: str,
                 base_url: str = DEFAULT_API_URL, timeout: Optional[float] = 30.0):
        self.session = session
        self.project_id = project_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> "MetricsClient":
        credentials = load_credentials(config.CREDENTIALS_FILE)
        return cls(
            AuthorizedSession(credentials),
            config.PROJECT_ID,
            base_url=config.API_URL,
            timeout=config.REQUEST_TIMEOUT,
        )

    def query(self, metric_set: str, window: TimeWindow, metrics: Sequence[str]) -> List[MetricRow]:
        url = f"{self.base_url}/v1beta1/{self.project_id}/{metric_set}:query"
        body = {"timelineSpec": window.to_timeline_spec(), "metrics": list(metrics)}

        rows: List[MetricRow] = []
        seen_tokens = set()
        while True:
            payload = self._post(url, body)
            raw_rows = payload.get("rows", [])
            if not isinstance(raw_rows, list):
                raise MetricsAPIError(f"Malformed response from {url}: 'rows' is not a list")
            rows.extend(_parse_row(raw) for raw in raw_rows)

            page_token = payload.get("nextPageToken")
            if not page_token:
                break
            if page_token in seen_tokens:
                logger.warning("Repeated page token from %s, stopping pagination", url)
                break
            seen_tokens.add(page_token)
            body = dict(body, pageToken=page_token)

        logger.debug("Fetched %d rows of %s for %s..%s", len(rows), metric_set, window.start, window.end)
        return rows

    def _post(self, url: str, body: dict) -> dict:
        try:
            resp = self.session.post(url, json=body, timeout=self.timeout)
        except (requests.RequestException, GoogleAuthError) as e:
            raise MetricsAPIError(f"Reporting API request failed: {e}") from e

        if resp.status_code >= 400:
            raise MetricsAPIError(f"Reporting API error {resp.status_code}: {resp.text[:600]}")

        try:
            payload = resp.json()
        except ValueError as e:
            raise MetricsAPIError(f"Reporting API returned invalid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise MetricsAPIError("Reporting API returned an unexpected payload")
        return payload


# -- даты и числа
def report_today(zone: tzinfo) -> date:
    return datetime.now(zone).date()


def trailing_window(today: date, start_days_ago: int, end_days_ago: int) -> TimeWindow:
    return TimeWindow(today - timedelta(days=start_days_ago), today - timedelta(days=end_days_ago))


def sort_rows(rows: Iterable[MetricRow]) -> List[MetricRow]:
    return sorted(rows, key=lambda row: row.period_start)


def parse_decimal(value) -> Decimal:
    try:
        result = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise MetricValueError(f"Invalid metric value: {value!r}") from e
    if not result.is_finite():
        raise MetricValueError(f"Invalid metric value: {value!r}")
    return result


def to_percentage(value) -> float:
    """Доля -> проценты, округление до 2 знаков как в подписи "%.2f%%"."""
    return float(round(parse_decimal(value) * 100, 2))


def format_percentage(value: float) -> str:
    return f"{value:.2f}%"


def format_date(day: date) -> str:
    return f"{day.day:02d}/{day.month:02d}/{day.year}"


# -- отчёты
def trend_point(row: MetricRow, metric: str = CRASH_RATE) -> TrendPoint:
    if metric not in row.metrics:
        raise MetricValueError(f"Row for {format_date(row.period_start)} has no {metric} value")
    return TrendPoint(timestamp=row.period_start, value=to_percentage(row.metrics[metric]))


def build_trend(client: MetricsClient, today: date) -> List[TrendPoint]:
    window = trailing_window(today, 8, 1)
    rows = sort_rows(client.query(CRASH_RATE_METRIC_SET, window, [CRASH_RATE]))

    points = [trend_point(row) for row in rows]
    for point in points:
        logger.debug("%s: %s", format_date(point.timestamp), format_percentage(point.value))
    return points


def build_comparison(client: MetricsClient, today: date) -> List[ComparisonEntry]:
    """
    Сравнение недель: для предыдущего (week=0) и текущего (week=1) окна
    берётся последняя строка и её значение crashRate7dUserWeighted в процентах.
    Окно без данных ничего не добавляет в результат.
    """
    windows = [trailing_window(today, 15, 8), trailing_window(today, 8, 1)]

    entries = []
    for week, window in enumerate(windows):
        rows = sort_rows(client.query(CRASH_RATE_METRIC_SET, window, [CRASH_RATE_7D_USER_WEIGHTED]))
        if not rows:
            logger.info("No data available for the specified period: %s..%s", window.start, window.end)
            continue

        last_row = rows[-1]
        logger.info("Start Time: %s", format_date(last_row.period_start))
        value = last_row.metrics.get(CRASH_RATE_7D_USER_WEIGHTED)
        if value is None:
            continue
        entries.append(ComparisonEntry(week=week, value=float(parse_decimal(value) * 100)))
    return entries


# -- график
def render_trend_chart(points: Sequence[TrendPoint], snapshot_path: Optional[Path] = None) -> bytes:
    fig = Figure(figsize=(10, 5))
    ax = fig.subplots()
    ax.plot([p.timestamp for p in points], [p.value for p in points], color="blue", linestyle="-")
    ax.set_title("Crash Rate Over Time")
    ax.set_xlabel("Date")
    ax.set_ylabel("Crash Rate (%)")
    ax.xaxis.set_major_formatter(mdates.DateFormatter(CHART_DATE_FORMAT))

    try:
        raw = io.BytesIO()
        fig.savefig(raw, format="png")
        raw.seek(0)

        img_buffer = io.BytesIO()
        with Image.open(raw) as img:
            img.save(img_buffer, format="PNG")
        data = img_buffer.getvalue()

        if snapshot_path:
            Path(snapshot_path).write_bytes(data)
    except (ValueError, OSError) as e:
        raise ChartError(f"Failed to render chart: {e}") from e

    return data
