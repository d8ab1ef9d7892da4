from datetime import datetime, timezone

from flask import Blueprint, current_app, request

from . import analytics, playback
from .queries import DatesQuery, MapQuery, QueryError, ScrapeQuery, TableQuery, TeamQuery
from .scraper import scrape_source, scrape_sources
from .timebuckets import day_range_utc


bp = Blueprint('main', __name__)

STORE_KEY = 'rowtrack.store'


def _store():
    return current_app.extensions[STORE_KEY]


def _settings():
    return current_app.config['ROWTRACK_SETTINGS']


def _fail(message: str, status: int, error: Exception | None = None):
    body = {'success': False, 'message': message}
    if error is not None:
        body['error'] = str(error)
    return body, status


@bp.errorhandler(QueryError)
def _bad_query(exc):
    return _fail(str(exc), 400)


@bp.route('/')
def index():
    return {
        'status': 'Server is running',
        'message': f"Data scraping runs every {_settings().scrape_interval_minutes} minutes",
        'endpoints': {
            'health': '/health',
            'scrapeDefault': '/scrape-now',
            'scrapeCustomUrl': '/scrape-url?url=YOUR_URL_HERE',
            'teamAnalytics': '/analytics/team?name=TEAM_NAME&sourceUrl=URL&timezone=0',
            'tableAnalytics': '/analytics/table?sourceUrl=URL&date=YYYY-MM-DD&timezone=0',
            'availableDates': '/analytics/dates?sourceUrl=URL&timezone=0',
            'mapData': '/map/data?sourceUrl=URL',
        },
    }


@bp.route('/health')
def health():
    """Database connectivity check: 200 when SELECT 1 succeeds, else 503."""
    now = datetime.now(timezone.utc).isoformat()
    try:
        store = _store()
        store.ensure_connected()
        store.ping()
    except Exception as e:  # pylint: disable=broad-except
        return {'status': 'error', 'database': 'disconnected', 'error': str(e), 'timestamp': now}, 503
    return {'status': 'ok', 'database': 'connected', 'timestamp': now}


@bp.route('/scrape-now')
def scrape_now():
    settings = _settings()
    current_app.logger.info("Manual scrape triggered for %d sources", len(settings.source_urls))
    results = scrape_sources(
        _store(), settings.source_urls, data_dir=settings.data_dir, timeout=settings.http_timeout
    )
    return {
        'success': True,
        'message': 'Data scraped and saved successfully',
        'sources': [
            {'sourceUrl': r.source_url, 'upserted': r.upserted, 'failed': r.failed} for r in results
        ],
    }


@bp.route('/scrape-url')
def scrape_url():
    query = ScrapeQuery.from_args(request.args)
    settings = _settings()
    current_app.logger.info("Custom URL scrape triggered for %s", query.url)
    try:
        res = scrape_source(_store(), query.url, data_dir=settings.data_dir, timeout=settings.http_timeout)
    except Exception as e:  # pylint: disable=broad-except
        current_app.logger.exception("Error during custom URL scrape")
        return _fail('Error scraping data', 500, e)
    body = {'success': True, 'message': f"Data scraped from {query.url} and saved successfully"}
    if res is not None:
        body.update({'upserted': res.upserted, 'failed': res.failed})
    else:
        body['message'] = f"No rows found at {query.url}"
    return body


@bp.route('/analytics/team')
def team_analytics():
    query = TeamQuery.from_args(request.args)
    start = end = None
    if query.start_date:
        start = day_range_utc(query.start_date, query.timezone)[0]
    if query.end_date:
        end = day_range_utc(query.end_date, query.timezone)[1]
    try:
        samples = _store().list_samples(
            source_url=query.source_url, team_name=query.name, start=start, end=end
        )
        payload = analytics.team_analytics(samples, query.timezone)
    except Exception as e:  # pylint: disable=broad-except
        current_app.logger.exception("Error getting team analytics")
        return _fail('Error calculating analytics', 500, e)
    if payload is None:
        return _fail('No data found for the specified team', 404)
    return {'success': True, 'data': payload}


@bp.route('/analytics/table')
def table_analytics():
    query = TableQuery.from_args(request.args)
    try:
        payload = analytics.table_analytics(_store(), query.source_url, query.date, query.timezone)
    except Exception as e:  # pylint: disable=broad-except
        current_app.logger.exception("Error getting table analytics")
        return _fail('Error calculating table analytics', 500, e)
    return {'success': True, **payload}


@bp.route('/analytics/dates')
def available_dates():
    query = DatesQuery.from_args(request.args)
    try:
        instants = _store().list_scrape_instants(query.source_url)
    except Exception as e:  # pylint: disable=broad-except
        current_app.logger.exception("Error getting available dates")
        return _fail('Error fetching dates', 500, e)
    return {
        'success': True,
        'sourceUrl': query.source_url,
        'timezone': query.timezone,
        'dates': analytics.available_dates(instants, query.timezone),
    }


@bp.route('/map/data')
def map_data():
    query = MapQuery.from_args(request.args)
    try:
        samples = _store().list_samples(source_url=query.source_url)
        if not samples:
            return _fail('No data found for the specified source', 404)
        payload = playback.map_playback(samples, query.source_url)
    except Exception as e:  # pylint: disable=broad-except
        current_app.logger.exception("Error getting map data")
        return _fail('Error fetching map data', 500, e)
    return {'success': True, **payload}
