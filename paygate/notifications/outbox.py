"""
Outbox des effets de bord (emails).
- enqueue: enregistre l'intention juste après la transition d'état; idempotent par clé
  (ex: signup_authorized:<reference>), une notification rejouée n'ajoute rien.
- process_pending: envoie les messages dus; un échec est réessayé avec backoff puis
  marqué 'dead' après OUTBOX_MAX_ATTEMPTS. Le jeton en clair est retiré du payload
  dès que le message est envoyé ou abandonné. Un échec d'envoi n'annule jamais la
  transition de paiement ni l'émission du jeton.
"""
import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from paygate.infra.clock import utcnow
from paygate.infra.store import KeyValueStore
from paygate.notifications.email import EmailSender, render_email

logger = logging.getLogger(__name__)

# Champs retirés du payload dès que le message est envoyé
SECRET_PAYLOAD_KEYS = frozenset({"token"})


class OutboxStatus(str, Enum):
    PENDING = "pending"
    SENDING = "sending"
    SENT = "sent"
    DEAD = "dead"


class OutboxMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    kind: str
    recipient: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    status: OutboxStatus = OutboxStatus.PENDING
    attempts: int = 0
    last_error: Optional[str] = None
    created_at: datetime
    next_attempt_at: datetime
    sent_at: Optional[datetime] = None


class Outbox:
    def __init__(
        self,
        store: KeyValueStore[OutboxMessage],
        sender: EmailSender,
        clock: Callable[[], datetime] = utcnow,
        max_attempts: int = 5,
        retry_base_seconds: int = 30,
    ):
        self.store = store
        self.sender = sender
        self.clock = clock
        self.max_attempts = max_attempts
        self.retry_base_seconds = retry_base_seconds

    def enqueue(self, key: str, kind: str, recipient: str, payload: Dict[str, Any]) -> bool:
        now = self.clock()
        message = OutboxMessage(
            key=key,
            kind=kind,
            recipient=recipient,
            payload=dict(payload),
            created_at=now,
            next_attempt_at=now,
        )
        created = self.store.put_if_absent(key, message)
        if not created:
            logger.info("notifications.outbox duplicate ignored key=%s", key)
        return created

    def process_pending(self) -> int:
        now = self.clock()
        sent = 0
        for key, message in self.store.items():
            if message.status != OutboxStatus.PENDING or message.next_attempt_at > now:
                continue
            claimed = message.model_copy(update={"status": OutboxStatus.SENDING, "attempts": message.attempts + 1})
            if not self.store.compare_and_swap(key, message, claimed):
                continue
            try:
                self.sender.send(render_email(claimed.kind, claimed.recipient, claimed.payload))
            except Exception as e:
                self._record_failure(claimed, e)
                continue
            # Une fois envoyé, le jeton en clair ne reste pas dans l'outbox
            self.store.put(key, claimed.model_copy(update={
                "status": OutboxStatus.SENT,
                "sent_at": self.clock(),
                "last_error": None,
                "payload": {k: v for k, v in claimed.payload.items() if k not in SECRET_PAYLOAD_KEYS},
            }))
            sent += 1
        return sent

    def _record_failure(self, message: OutboxMessage, error: Exception) -> None:
        error_text = f"{type(error).__name__}: {error}"
        if message.attempts >= self.max_attempts:
            self.store.put(message.key, message.model_copy(update={
                "status": OutboxStatus.DEAD,
                "last_error": error_text,
                "payload": {k: v for k, v in message.payload.items() if k not in SECRET_PAYLOAD_KEYS},
            }))
            logger.error("notifications.outbox dead key=%s attempts=%s error=%s", message.key, message.attempts, error_text)
            return
        delay = timedelta(seconds=self.retry_base_seconds * (2 ** (message.attempts - 1)))
        self.store.put(message.key, message.model_copy(update={
            "status": OutboxStatus.PENDING,
            "last_error": error_text,
            "next_attempt_at": self.clock() + delay,
        }))
        logger.warning("notifications.outbox retry key=%s attempt=%s in=%ss error=%s",
                       message.key, message.attempts, int(delay.total_seconds()), error_text)

    def get(self, key: str) -> Optional[OutboxMessage]:
        return self.store.get(key)

    def stats(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in OutboxStatus}
        for message in self.store.values():
            counts[message.status.value] += 1
        return counts
