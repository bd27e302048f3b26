import inspect
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from openai import AsyncOpenAI

from dal.session_dal import SessionDAL
from routes.admin_route import router as admin_router
from routes.chat_route import router as chat_router
from routes.command_route import router as command_router
from routes.realtime_ws import router as realtime_router
from services.admin.auth import AdminAuth
from services.admin.console import AdminConsole
from services.ai.responder import PersonaResponder
from services.chat.turns import VisitorTurnProcessor
from services.live.store import LiveStore
from services.notify.dispatcher import NotificationDispatcher
from services.notify.webhook import AlertOutbox, WebhookClient
from services.operator.actions import OperatorActions
from services.operator.command_channel import CommandChannel
from services.signals.policy import EscalationPolicy
from utils.database_init import AsyncDatabaseInitializer
from utils.settings import Settings

load_dotenv()  # Load environment variables from .env file if present

LOGGER = logging.getLogger(__name__)


def _build_responder(app: FastAPI, settings: Settings) -> PersonaResponder:
    if not settings.openai_api_key:
        raise RuntimeError("OPENAI_API_KEY environment variable is not set")
    try:
        openai_client = AsyncOpenAI(api_key=settings.openai_api_key)
    except Exception as exc:
        raise RuntimeError("Failed to initialize OpenAI Async client") from exc
    app.state.openai_client = openai_client
    return PersonaResponder(openai_client, model=settings.persona_model, operator_name=settings.operator_name)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the SQLite session store (DATABASE_DIR/handoff.db)
      - the alert dispatcher, operator channel and console login
      - the OpenAI async client behind the persona responder
    and attach them to `app.state`.
    """
    settings: Settings = app.state.settings

    db_initializer = AsyncDatabaseInitializer(settings.database_dir, reset=settings.database_reset_on_start)
    await db_initializer.ensure_database()
    app.state.db_initializer = db_initializer

    store = LiveStore(SessionDAL(db_initializer), clock=app.state.clock)
    app.state.store = store

    webhook = getattr(app.state, "webhook", None) or WebhookClient(
        settings.slack_webhook_url, timeout=settings.notify_timeout_seconds
    )
    dispatcher = NotificationDispatcher(webhook, outbox=AlertOutbox(settings.notify_outbox_path), site_url=settings.site_url)
    app.state.dispatcher = dispatcher

    responder = getattr(app.state, "responder", None) or _build_responder(app, settings)
    app.state.processor = VisitorTurnProcessor(
        store, dispatcher, responder, EscalationPolicy(auto_escalate=settings.auto_escalate)
    )

    actions = OperatorActions(store, settings.operator_name)
    app.state.actions = actions
    app.state.command_channel = CommandChannel(actions, settings.slack_signing_secret)
    app.state.admin_auth = AdminAuth(
        settings.admin_password,
        lambda: AdminConsole(
            store,
            actions,
            active_within_seconds=settings.session_active_window_seconds,
            poll_seconds=settings.admin_poll_seconds,
        ),
    )
    if not settings.slack_webhook_url:
        LOGGER.warning("SLACK_WEBHOOK_URL is not set; operator alerts will only be logged")

    try:
        yield
    finally:
        app.state.admin_auth.close_all()
        await dispatcher.wait_idle()
        # Gracefully close the OpenAI client if it exposes a close/aclose method.
        client = getattr(app.state, "openai_client", None)
        if client is not None:
            aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
            if aclose is not None:
                try:
                    result = aclose()
                    if inspect.isawaitable(result):
                        await result
                except Exception as exc:
                    LOGGER.warning("Error closing OpenAI client: %s", exc)


def create_app(
    settings: Optional[Settings] = None,
    *,
    responder: Optional[PersonaResponder] = None,
    webhook: Optional[WebhookClient] = None,
    clock=time.time,
) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    `responder` and `webhook` replace the OpenAI and chat-ops clients, which
    is how tests run the app offline.
    """
    settings = settings or Settings.from_env()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    app = FastAPI(lifespan=lifespan)
    app.state.settings = settings
    app.state.clock = clock
    app.state.responder = responder
    app.state.webhook = webhook

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check that verifies the store and the AI responder are wired.
        """
        has_db = hasattr(request.app.state, "db_initializer")
        has_ai = getattr(request.app.state, "processor", None) is not None
        return {"ok": True, "db_initialized": has_db, "ai_available": has_ai}

    # Register application routers
    app.include_router(chat_router)
    app.include_router(realtime_router)
    app.include_router(command_router)
    app.include_router(admin_router, prefix=settings.admin_path)

    return app


app = create_app()
