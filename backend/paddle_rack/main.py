import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session

from paddle_rack.config import get_settings
from paddle_rack.database import engine, init_db
from paddle_rack.routes import games, predictions, queues, webhooks
from paddle_rack.services.notifier import Notifier, SmsClient
from paddle_rack.services.queue_engine import QueueEngine
from paddle_rack.services.wait_predictor import prune_metrics
from paddle_rack.services.webhook_emitter import build_emitter

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Paddle Rack Queue API")

_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_cors_origins.extend(settings.cors_origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(queues.router, prefix="/api", tags=["queues"])
app.include_router(games.router, prefix="/api", tags=["games"])
app.include_router(predictions.router, prefix="/api", tags=["predictions"])
app.include_router(webhooks.router, prefix="/api", tags=["webhooks"])


def _session_factory() -> Session:
    return Session(engine)


@app.on_event("startup")
def on_startup():
    init_db()

    # Collaborators are built once here and reached through dependencies
    webhook_emitter = build_emitter(timeout_seconds=settings.webhook_timeout_seconds)
    notifier = Notifier(_session_factory, SmsClient.from_settings(settings))
    app.state.session_factory = _session_factory
    app.state.webhook_emitter = webhook_emitter
    app.state.queue_engine = QueueEngine(settings, notifier, webhook_emitter)

    with _session_factory() as session:
        prune_metrics(session, settings.metric_retention_days)

    logger.info(
        f"Queue engine ready (rotation threshold {settings.rotation_threshold}, "
        f"max consecutive wins {settings.max_consecutive_wins})"
    )


@app.on_event("shutdown")
def on_shutdown():
    webhook_emitter = getattr(app.state, "webhook_emitter", None)
    if webhook_emitter is not None:
        webhook_emitter.close()


@app.get("/api/health")
def health_check():
    return {"app_name": "Paddle Rack Queue API", "status": "healthy"}
