from dataclasses import dataclass

from sqlalchemy.engine import Engine

from vehiscan.core.bruteforce import LockoutTracker
from vehiscan.core.clock import Clock, now_ms
from vehiscan.core.config import Settings
from vehiscan.core.rate_limit import RateLimiter
from vehiscan.db.base import Base
from vehiscan.db.session import make_engine, make_session_factory
from vehiscan.services.auth import SqlAuthProvider
from vehiscan.services.documents import SqlDocumentStore
from vehiscan.services.scans import ScanService
from vehiscan.services.storage import KeyValueStore, SqlKeyValueStore


@dataclass
class AppContext:
    """Every shared handle the guarded actions need, owned by the app."""
    settings: Settings
    engine: Engine
    kv_store: KeyValueStore
    documents: SqlDocumentStore
    auth: SqlAuthProvider
    rate_limiter: RateLimiter
    lockout: LockoutTracker
    scans: ScanService

    def close(self) -> None:
        self.engine.dispose()


def build_context(
    settings: Settings,
    clock: Clock = now_ms,
    kv_store: KeyValueStore | None = None,
) -> AppContext:
    engine = make_engine(settings.DATABASE_URL)
    Base.metadata.create_all(bind=engine)
    session_factory = make_session_factory(engine)

    kv_store = kv_store if kv_store is not None else SqlKeyValueStore(session_factory)
    documents = SqlDocumentStore(session_factory)
    rate_limiter = RateLimiter(kv_store, clock=clock, fail_closed=settings.RATE_LIMIT_FAIL_CLOSED)

    return AppContext(
        settings=settings,
        engine=engine,
        kv_store=kv_store,
        documents=documents,
        auth=SqlAuthProvider(session_factory, settings.get_admin_emails()),
        rate_limiter=rate_limiter,
        lockout=LockoutTracker(
            kv_store,
            max_attempts=settings.LOCKOUT_MAX_ATTEMPTS,
            lockout_ms=settings.LOCKOUT_DURATION_MS,
            clock=clock,
        ),
        scans=ScanService(
            documents,
            rate_limiter,
            max_attempts=settings.SCAN_MAX_ATTEMPTS,
            window_ms=settings.SCAN_WINDOW_MS,
        ),
    )
