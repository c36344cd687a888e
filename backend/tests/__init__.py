# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from paddle_rack.models import (  # noqa: F401
    Court,
    Facility,
    Game,
    GameMetric,
    NotificationLog,
    PlayerContact,
    Queue,
    QueueEntry,
    Webhook,
    WebhookDelivery,
)
