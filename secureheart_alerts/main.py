import logging
import sys
from datetime import timedelta
from typing import Optional

from fastapi import FastAPI
from sqlalchemy.engine import Engine

from .adapters.push import PushClient, build_push_client
from .api import auth, emergency_events, links, notifications, users
from .core.config import Settings, settings as default_settings
from .repositories import db
from .repositories.repository import Repository
from .services.contact_linker import ContactLinker
from .services.emergency_processor import EmergencyEventProcessor
from .services.link_invitations import LinkInvitationStore
from .services.notification_dispatcher import NotificationDispatcher
from .services.retention import RetentionSweeper
from .services.triggers import SweepScheduler, TriggerBus

logging.basicConfig(level=default_settings.log_level, format="%(asctime)s [%(levelname)s] %(message)s")
log = logging.getLogger(__name__)

if hasattr(sys.stdout, "reconfigure"):
    sys.stdout.reconfigure(encoding="utf-8")
if hasattr(sys.stderr, "reconfigure"):
    sys.stderr.reconfigure(encoding="utf-8")


def build_bus(
    repository: Repository,
    push_client: PushClient,
    settings: Settings,
) -> TriggerBus:
    """Wire every handler to its trigger."""
    dispatcher = NotificationDispatcher(
        push_client,
        timeout=settings.push_timeout_seconds,
        max_retries=settings.push_max_retries,
        retry_backoff=settings.push_retry_backoff_seconds,
        max_concurrency=settings.push_max_concurrency,
    )
    processor = EmergencyEventProcessor(repository, dispatcher)
    invitations = LinkInvitationStore(repository, ttl=timedelta(hours=settings.invitation_ttl_hours))
    sweeper = RetentionSweeper(
        repository,
        notification_retention=timedelta(days=settings.notification_retention_days),
        batch_size=settings.sweep_batch_size,
    )

    bus = TriggerBus()
    bus.on_emergency_request_created(processor.process)
    bus.on_link_request_created(invitations.process)
    bus.on_schedule(
        "cleanup_expired_links",
        timedelta(hours=settings.invitation_sweep_interval_hours),
        sweeper.sweep_expired_invitations,
    )
    bus.on_schedule(
        "cleanup_old_notifications",
        timedelta(hours=settings.notification_sweep_interval_hours),
        sweeper.sweep_processed_notifications,
    )
    return bus


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    push_client: Optional[PushClient] = None,
) -> FastAPI:
    settings = settings or default_settings
    app = FastAPI(title=settings.app_name, version=settings.app_version)

    @app.on_event("startup")
    def _startup() -> None:
        try:
            repository = Repository(engine or db.get_engine())
            repository.init_db()
            bus = build_bus(repository, push_client or build_push_client(settings), settings)
            app.state.repository = repository
            app.state.bus = bus
            app.state.linker = ContactLinker(repository)
            app.state.scheduler = None
            if settings.scheduler_enabled:
                app.state.scheduler = SweepScheduler(bus)
                app.state.scheduler.start()
        except Exception:  # pragma: no cover
            log.exception("Startup error")
            raise

    @app.on_event("shutdown")
    def _shutdown() -> None:
        scheduler = getattr(app.state, "scheduler", None)
        if scheduler is not None:
            scheduler.stop()

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(notifications.router)
    app.include_router(emergency_events.router)
    app.include_router(links.router)
    return app


app = create_app()
