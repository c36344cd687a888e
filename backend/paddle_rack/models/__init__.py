from paddle_rack.models.court import Court
from paddle_rack.models.facility import Facility
from paddle_rack.models.game import Game
from paddle_rack.models.game_metric import GameMetric
from paddle_rack.models.notification_log import NotificationLog
from paddle_rack.models.player_contact import PlayerContact
from paddle_rack.models.queue import Queue, QueueEntry
from paddle_rack.models.webhook import Webhook, WebhookDelivery

__all__ = [
    "Facility",
    "Court",
    "Queue",
    "QueueEntry",
    "Game",
    "GameMetric",
    "PlayerContact",
    "NotificationLog",
    "Webhook",
    "WebhookDelivery",
]
