from flask import Flask

from .config import Settings, load_settings
from .datastore import SampleStore


def create_app(settings: Settings | None = None, store: SampleStore | None = None):
    app = Flask(__name__)

    settings = settings or load_settings()
    if not settings.database_url:
        raise RuntimeError("DATABASE_URL is required; rowtrack stores samples in PostgreSQL.")
    app.config['ROWTRACK_SETTINGS'] = settings

    if store is None:
        store = SampleStore(pool_min=settings.pool_min, pool_max=settings.pool_max)
    # Connect early when possible; requests reconnect on demand otherwise
    try:
        store.ensure_connected()
    except Exception:  # pylint: disable=broad-except
        app.logger.exception("PostgreSQL connection failed at startup; will retry on first request")
    app.extensions['rowtrack.store'] = store

    from . import routes
    app.register_blueprint(routes.bp)

    return app
