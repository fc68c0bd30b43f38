"""
Emails du parcours d'inscription.
- EmailSender: capacité d'envoi injectée dans l'outbox (fournisseur réel hors périmètre).
- LoggingEmailSender: envoi simulé, journalisé (le jeton n'apparaît que masqué).
- render_email: construit le message à partir du type d'intention enregistré dans l'outbox.
"""
import logging
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict

from paygate.utils.security import mask_secret

logger = logging.getLogger(__name__)

SIGNUP_AUTHORIZED = "signup_authorized"
PAYMENT_FAILED = "payment_failed"


class EmailMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    to: str
    subject: str
    body: str


class EmailSender:
    def send(self, message: EmailMessage) -> None:
        raise NotImplementedError


class LoggingEmailSender(EmailSender):
    def send(self, message: EmailMessage) -> None:
        logger.info("notifications.email sent to=%s subject=%s", message.to, message.subject)


def render_email(kind: str, recipient: str, payload: Dict[str, Any]) -> EmailMessage:
    if kind == SIGNUP_AUTHORIZED:
        token = payload["token"]
        link = f"{payload['signup_url']}?token={token}"
        logger.debug("notifications.email signup link for %s token=%s", recipient, mask_secret(token))
        return EmailMessage(
            to=recipient,
            subject="Paiement confirmé : finalisez votre inscription",
            body=(
                "Votre paiement a bien été reçu.\n"
                f"Utilisez ce jeton pour créer votre compte : {token}\n"
                f"Lien d'inscription : {link}\n"
                f"Ce lien expire le {payload.get('expires_at', '')}."
            ),
        )
    if kind == PAYMENT_FAILED:
        reason = payload.get("reason") or "raison inconnue"
        return EmailMessage(
            to=recipient,
            subject="Échec du paiement",
            body=(
                f"Le paiement {payload.get('reference', '')} n'a pas abouti ({reason}).\n"
                "Vous pouvez relancer un paiement pour poursuivre votre inscription."
            ),
        )
    raise ValueError(f"Type d'email inconnu: {kind}")
