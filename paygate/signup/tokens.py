"""
Émission et consommation des jetons d'inscription (AuthorizationIssuer).
Rôles:
- issue: crée un jeton lié à un paiement 'completed' (email, plan, référence, expiration).
- redeem: valide puis consomme le jeton; retourne un statut parmi ok / expired /
  already_used / not_found / email_mismatch (même logique que la validation des billets).
- reap: supprime les jetons expirés (simple récupération mémoire).
- find_active_token_for: jeton encore utilisable pour une référence (polling du statut).
Concurrence: le passage used=True passe par compare_and_swap; un jeton ne peut être
consommé qu'une seule fois, même sur deux requêtes simultanées.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from paygate.errors import InvalidInput
from paygate.infra.clock import utcnow
from paygate.infra.ids import IdGenerator
from paygate.infra.store import KeyValueStore
from paygate.payments.ledger import PaymentLedger
from paygate.signup.models import RedeemOutcome, Redemption, SignupAuthorization
from paygate.utils.security import mask_secret

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_TTL = timedelta(minutes=30)


class AuthorizationIssuer:
    def __init__(
        self,
        store: KeyValueStore[SignupAuthorization],
        ledger: PaymentLedger,
        ids: Optional[IdGenerator] = None,
        clock: Callable[[], datetime] = utcnow,
        default_ttl: timedelta = DEFAULT_TOKEN_TTL,
    ):
        self.store = store
        self.ledger = ledger
        self.ids = ids or IdGenerator()
        self.clock = clock
        self.default_ttl = default_ttl

    def issue(self, email: str, plan: str, reference: str, ttl: Optional[timedelta] = None) -> str:
        payment = self.ledger.get_status(reference)
        if not payment.signup_allowed:
            raise InvalidInput("Paiement non confirmé pour cette référence", code="payment_not_completed")

        now = self.clock()
        while True:
            token = self.ids.signup_token()
            authorization = SignupAuthorization(
                token=token,
                email=email,
                plan=plan,
                payment_reference=reference,
                issued_at=now,
                expires_at=now + (ttl or self.default_ttl),
            )
            if self.store.put_if_absent(token, authorization):
                break

        logger.info("signup.tokens issued reference=%s token=%s expires_at=%s",
                    reference, mask_secret(token), authorization.expires_at.isoformat())
        return token

    def get(self, token: str) -> Optional[SignupAuthorization]:
        return self.store.get(token) if token else None

    def redeem(self, token: str, email: Optional[str] = None) -> Redemption:
        while True:
            current = self.store.get(token) if token else None
            if current is None:
                return Redemption(outcome=RedeemOutcome.NOT_FOUND)
            # Expiration vérifiée ici, que le reaper soit passé ou non
            if current.is_expired(self.clock()):
                return Redemption(outcome=RedeemOutcome.EXPIRED, authorization=current)
            if current.used:
                return Redemption(outcome=RedeemOutcome.ALREADY_USED, authorization=current)
            if email and email.strip().lower() != current.email.strip().lower():
                return Redemption(outcome=RedeemOutcome.EMAIL_MISMATCH)

            consumed = current.model_copy(update={"used": True, "used_at": self.clock()})
            if self.store.compare_and_swap(token, current, consumed):
                logger.info("signup.tokens redeemed reference=%s token=%s",
                            consumed.payment_reference, mask_secret(token))
                return Redemption(outcome=RedeemOutcome.OK, authorization=consumed)

    def reap(self) -> int:
        now = self.clock()
        removed = self.store.delete_if(lambda _token, auth: auth.is_expired(now))
        if removed:
            logger.info("signup.tokens reaped count=%s", removed)
        return removed

    def find_active_token_for(self, reference: str) -> Optional[str]:
        now = self.clock()
        for token, auth in self.store.items():
            if auth.payment_reference == reference and not auth.used and not auth.is_expired(now):
                return token
        return None

    def count_active(self) -> int:
        now = self.clock()
        return sum(1 for auth in self.store.values() if not auth.used and not auth.is_expired(now))
