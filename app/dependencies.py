from functools import lru_cache

from adapters.metrics.prometheus import PrometheusMetrics
from app.services.admin_service import AdminService
from app.settings import get_settings
from app.state import ActiveDatabase


@lru_cache()
def get_active_database() -> ActiveDatabase:
    """
    Singleton holder of the active connection pool.

    The pool itself is built lazily on first use, so importing the app
    never opens a database connection.
    """
    return ActiveDatabase(get_settings())


@lru_cache()
def get_admin_service() -> AdminService:
    """
    Singleton-ish AdminService for the FastAPI app.

    Uses centralized Settings so configuration is loaded once and injected.
    """
    return AdminService(
        active=get_active_database(),
        settings=get_settings(),
        metrics=PrometheusMetrics(),
    )
