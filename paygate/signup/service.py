"""Couche service du parcours « payer puis s'inscrire » (SignupWorkflow).
Rôles:
- initiate: enregistre un paiement 'pending' puis crée la transaction Paystack (URL de checkout).
- handle_provider_notification: vérifie la signature, applique charge.success / charge.failed
  au ledger, émet le jeton d'inscription et enregistre l'email dans l'outbox.
- submit_signup: consomme le jeton et crée le compte (mot de passe hashé).
- check_status: statut public d'un paiement, avec le jeton actif si la politique l'autorise.
Idempotence:
- Une notification rejouée pour un paiement déjà résolu est acquittée sans effet
  (pas de second jeton, pas de second email).
- Les types d'événements inconnus et les références inconnues sont acquittés (200),
  sinon Paystack réessaie indéfiniment.
"""
from datetime import datetime
from typing import Any, Callable, Dict, Optional
import logging

from paygate import config
from paygate.errors import Conflict, InvalidInput, NotFound, Unauthorized, UpstreamFailure
from paygate.infra.clock import utcnow
from paygate.infra.ids import IdGenerator
from paygate.notifications.email import PAYMENT_FAILED, SIGNUP_AUTHORIZED
from paygate.notifications.outbox import Outbox
from paygate.payments import events
from paygate.payments.ledger import PaymentLedger
from paygate.payments.models import Completed, Failed, PaymentStatus
from paygate.payments.signature import verify
from paygate.signup.models import RedeemOutcome, User
from paygate.signup.tokens import AuthorizationIssuer
from paygate.users.repository import UserRepository
from paygate.utils.security import hash_password

logger = logging.getLogger(__name__)

_REDEEM_ERRORS = {
    RedeemOutcome.NOT_FOUND: ("Jeton d'inscription invalide ou expiré", "token_not_found"),
    RedeemOutcome.EXPIRED: ("Jeton d'inscription expiré", "token_expired"),
    RedeemOutcome.ALREADY_USED: ("Jeton d'inscription déjà utilisé", "token_already_used"),
    RedeemOutcome.EMAIL_MISMATCH: ("Ce jeton n'est pas associé à cet email", "email_mismatch"),
}


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


class SignupWorkflow:
    def __init__(
        self,
        *,
        ledger: PaymentLedger,
        issuer: AuthorizationIssuer,
        users: UserRepository,
        outbox: Outbox,
        provider: Any,
        webhook_secret: str,
        password_hasher: Callable[[str], str] = hash_password,
        ids: Optional[IdGenerator] = None,
        clock: Callable[[], datetime] = utcnow,
        callback_url: Optional[str] = config.PAYMENT_CALLBACK_URL,
        signup_url: str = config.SIGNUP_URL,
        expose_token_on_status: bool = True,
    ):
        self.ledger = ledger
        self.issuer = issuer
        self.users = users
        self.outbox = outbox
        self.provider = provider
        self.webhook_secret = webhook_secret
        self.password_hasher = password_hasher
        self.ids = ids or IdGenerator()
        self.clock = clock
        self.callback_url = callback_url
        self.signup_url = signup_url
        self.expose_token_on_status = expose_token_on_status

    # --- Étape 1: paiement avant inscription ---

    def initiate(
        self,
        email: str,
        amount: int,
        plan: str,
        metadata: Optional[Dict[str, Any]] = None,
        callback_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Crée le paiement 'pending' puis la transaction Paystack.
        - En cas d'échec Paystack, le paiement reste 'pending' (aucun jeton ne pourra être émis)
          et UpstreamFailure est propagée à l'appelant.
        """
        reference = self.ledger.initiate(email, amount, plan, metadata)
        payment = self.ledger.get_status(reference)
        try:
            checkout = self.provider.initialize_transaction(
                email=payment.email,
                amount=payment.amount,
                reference=reference,
                metadata={**payment.metadata, "planType": payment.plan},
                callback_url=callback_url or self.callback_url,
            )
        except UpstreamFailure:
            logger.warning("signup.initiate provider failure reference=%s (paiement laissé pending)", reference)
            raise
        return {
            "success": True,
            "paymentUrl": checkout["authorization_url"],
            "reference": reference,
            "message": "Finalisez le paiement pour poursuivre l'inscription",
        }

    # --- Étape 2: notification Paystack ---

    def handle_provider_notification(self, raw_body: Optional[bytes], signature: Optional[str]) -> Dict[str, Any]:
        if not raw_body:
            raise InvalidInput("Body de requête vide", code="empty_body")
        if not verify(raw_body, signature, self.webhook_secret):
            logger.warning("signup.webhook invalid signature header_present=%s", bool(signature))
            raise Unauthorized("Signature invalide", code="invalid_signature")

        event_type, data = events.parse_event(raw_body)
        logger.info("signup.webhook verified event=%s", event_type)

        if event_type == events.CHARGE_SUCCESS:
            self._on_charge_success(data)
        elif event_type == events.CHARGE_FAILED:
            self._on_charge_failed(data)
        else:
            logger.info("signup.webhook unhandled event type=%s", event_type)
        return {"received": True}

    def _on_charge_success(self, data: Dict[str, Any]) -> None:
        reference = events.extract_reference(data)
        if not reference:
            logger.warning("signup.webhook charge.success without reference")
            return
        outcome = Completed(
            transaction_id=events.extract_transaction_id(data),
            provider_data=events.extract_provider_data(data),
        )
        try:
            resolution = self.ledger.resolve(reference, outcome)
        except NotFound:
            logger.warning("signup.webhook unknown reference=%s event=charge.success", reference)
            return
        payment = resolution.payment
        if not resolution.transitioned:
            logger.info("signup.webhook already resolved reference=%s status=%s", reference, payment.status.value)
            return

        token = self.issuer.issue(payment.email, payment.plan, reference)
        authorization = self.issuer.get(token)
        self.outbox.enqueue(
            key=f"{SIGNUP_AUTHORIZED}:{reference}",
            kind=SIGNUP_AUTHORIZED,
            recipient=payment.email,
            payload={
                "token": token,
                "reference": reference,
                "plan": payment.plan,
                "signup_url": self.signup_url,
                "expires_at": authorization.expires_at.isoformat() if authorization else "",
            },
        )
        logger.info("signup.webhook payment completed reference=%s email=%s", reference, payment.email)

    def _on_charge_failed(self, data: Dict[str, Any]) -> None:
        reference = events.extract_reference(data)
        if not reference:
            logger.warning("signup.webhook charge.failed without reference")
            return
        outcome = Failed(
            reason=events.extract_failure_reason(data),
            provider_data=events.extract_provider_data(data),
        )
        try:
            resolution = self.ledger.resolve(reference, outcome)
        except NotFound:
            logger.warning("signup.webhook unknown reference=%s event=charge.failed", reference)
            return
        payment = resolution.payment
        if not resolution.transitioned:
            logger.info("signup.webhook already resolved reference=%s status=%s", reference, payment.status.value)
            return

        self.outbox.enqueue(
            key=f"{PAYMENT_FAILED}:{reference}",
            kind=PAYMENT_FAILED,
            recipient=payment.email,
            payload={"reference": reference, "reason": payment.failure_reason},
        )
        logger.info("signup.webhook payment failed reference=%s reason=%s", reference, payment.failure_reason)

    # --- Étape 3: inscription avec le jeton ---

    def submit_signup(
        self,
        token: Optional[str],
        full_name: Optional[str],
        credential: Optional[str],
        phone: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Crée le compte lié au paiement.
        - Champs manquants ou mot de passe refusé par le hasher: rejet avant toute consommation du jeton.
        - Jeton invalide / expiré / déjà utilisé: Unauthorized.
        - Compte existant pour l'email: Conflict (création atomique par email).
        """
        token = _clean(token)
        if not token:
            raise InvalidInput("Jeton d'inscription requis. Veuillez d'abord finaliser le paiement.", code="missing_token")
        full_name = _clean(full_name)
        if not full_name or not isinstance(credential, str) or not credential:
            raise InvalidInput("Nom complet et mot de passe requis", code="missing_fields")

        # Hash calculé avant la consommation: un échec ici laisse le jeton utilisable
        password_hash = self.password_hasher(credential)

        redemption = self.issuer.redeem(token, _clean(email) or None)
        if not redemption.ok:
            message, code = _REDEEM_ERRORS[redemption.outcome]
            logger.info("signup.rejected outcome=%s", redemption.outcome.value)
            raise Unauthorized(message, code=code)

        authorization = redemption.authorization
        if self.users.exists(authorization.email):
            raise Conflict("L'utilisateur existe déjà", code="user_exists")

        user = User(
            id=self.ids.user_id(),
            email=authorization.email,
            full_name=full_name,
            phone=_clean(phone) or None,
            plan=authorization.plan,
            payment_reference=authorization.payment_reference,
            created_at=self.clock(),
            password_hash=password_hash,
        )
        if not self.users.create(user):
            raise Conflict("L'utilisateur existe déjà", code="user_exists")

        logger.info("signup.created user_id=%s email=%s plan=%s", user.id, user.email, user.plan)
        return user.public_view()

    # --- Statut ---

    def check_status(self, reference: Optional[str]) -> Dict[str, Any]:
        reference = _clean(reference)
        if not reference:
            raise InvalidInput("Référence de paiement requise", code="missing_reference")
        payment = self.ledger.get_status(reference)
        response = payment.public_view()
        if payment.signup_allowed and self.expose_token_on_status:
            token = self.issuer.find_active_token_for(reference)
            if token:
                response["signupToken"] = token
        return response

    # --- Tâches de fond et santé ---

    def reap_expired_tokens(self) -> int:
        return self.issuer.reap()

    def process_outbox(self) -> int:
        return self.outbox.process_pending()

    def stats(self) -> Dict[str, Any]:
        payments = {status.value: 0 for status in PaymentStatus}
        for payment in self.ledger.store.values():
            payments[payment.status.value] += 1
        return {
            "payments": payments,
            "active_tokens": self.issuer.count_active(),
            "users": self.users.count(),
            "outbox": self.outbox.stats(),
        }
