"""
Файл запуска приложения и объявление основных путей.
"""

# -- импорт модулей
import logging
import sys
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from flask import Flask, Response, jsonify, make_response

from config import Config, config
from utils import (
    MetricsClient,
    ReportError,
    build_comparison,
    build_trend,
    render_trend_chart,
    report_today,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger("main")


def create_app(settings: Optional[Config] = None, client: Optional[MetricsClient] = None) -> Flask:
    settings = settings or config
    # часовой пояс и учётные данные читаются один раз, ошибка останавливает запуск
    zone = ZoneInfo(settings.REPORT_TIMEZONE)
    client = client or MetricsClient.from_config(settings)

    app = Flask(__name__)

    # -- коммуникация с пользователем
    @app.route('/get-crashes', methods=['GET'])
    def get_crashes():
        points = build_trend(client, report_today(zone))
        png = render_trend_chart(points, settings.CHART_FILE)

        response = make_response(png)
        response.headers['Content-Type'] = 'image/png'
        return response

    @app.route('/movingavg/crashes', methods=['GET'])
    def get_weekly_avg_comparison():
        entries = build_comparison(client, report_today(zone))
        return jsonify([entry.to_dict() for entry in entries])

    @app.route('/')
    def index():
        life = datetime.now().isoformat()
        return f'[{life}] Сервер запущен'

    @app.errorhandler(ReportError)
    def handle_report_error(error):
        logger.error("Request failed: %s", error, exc_info=error)
        return Response(str(error), status=500, mimetype='text/plain')

    return app


# -- запуск приложения
if __name__ == '__main__':
    app = create_app(config)
    logger.info("Listening on port %d", config.PORT)
    app.run(host=config.HOST, port=config.PORT, debug=config.DEBUG)
