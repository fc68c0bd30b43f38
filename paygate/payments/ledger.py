"""
Registre des tentatives de paiement (PaymentLedger).
Rôles:
- initiate: valide la demande, génère une référence non devinable, enregistre un paiement 'pending'.
- resolve: applique une issue terminale (Completed/Failed) une seule fois par référence.
- get_status: lecture d'un paiement pour la vérification de statut.
Concurrence: resolve passe par compare_and_swap; deux livraisons simultanées du même
événement ne produisent qu'une seule transition.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from paygate.errors import InvalidInput, NotFound
from paygate.infra.clock import utcnow
from paygate.infra.ids import IdGenerator
from paygate.infra.store import KeyValueStore
from paygate.payments.models import Completed, Failed, Outcome, PaymentStatus, PendingPayment, Resolution

logger = logging.getLogger(__name__)


class PaymentLedger:
    def __init__(
        self,
        store: KeyValueStore[PendingPayment],
        ids: Optional[IdGenerator] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.ids = ids or IdGenerator()
        self.clock = clock

    def initiate(self, email: str, amount: int, plan: str, metadata: Optional[Dict[str, Any]] = None) -> str:
        email = (email or "").strip() if isinstance(email, str) else ""
        plan = (plan or "").strip() if isinstance(plan, str) else ""
        if not email:
            raise InvalidInput("Email requis", code="missing_fields")
        if not plan:
            raise InvalidInput("planType requis", code="missing_fields")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidInput("Le montant doit être un entier strictement positif", code="invalid_amount")
        if metadata is not None and not isinstance(metadata, dict):
            raise InvalidInput("metadata doit être un objet", code="invalid_metadata")

        while True:
            reference = self.ids.payment_reference()
            payment = PendingPayment(
                reference=reference,
                email=email,
                amount=amount,
                plan=plan,
                metadata=dict(metadata or {}),
                created_at=self.clock(),
            )
            if self.store.put_if_absent(reference, payment):
                break
            logger.warning("payments.ledger reference collision, regenerating")

        logger.info("payments.ledger initiated reference=%s plan=%s amount=%s", reference, plan, amount)
        return reference

    def resolve(self, reference: str, outcome: Outcome) -> Resolution:
        """
        Applique l'issue au paiement.
        - NotFound si la référence est inconnue.
        - Paiement déjà terminal: aucun changement, transitioned=False.
        """
        while True:
            current = self.store.get(reference)
            if current is None:
                raise NotFound(f"Paiement introuvable: {reference}", code="payment_not_found")
            if current.is_terminal:
                return Resolution(payment=current, transitioned=False)

            if isinstance(outcome, Completed):
                updated = current.model_copy(update={
                    "status": PaymentStatus.COMPLETED,
                    "resolved_at": self.clock(),
                    "transaction_id": outcome.transaction_id,
                    "provider_data": dict(outcome.provider_data),
                })
            elif isinstance(outcome, Failed):
                updated = current.model_copy(update={
                    "status": PaymentStatus.FAILED,
                    "resolved_at": self.clock(),
                    "failure_reason": outcome.reason,
                    "provider_data": dict(outcome.provider_data),
                })
            else:
                raise TypeError(f"Issue de paiement inconnue: {outcome!r}")

            if self.store.compare_and_swap(reference, current, updated):
                logger.info("payments.ledger resolved reference=%s status=%s", reference, updated.status.value)
                return Resolution(payment=updated, transitioned=True)

    def get_status(self, reference: str) -> PendingPayment:
        payment = self.store.get(reference) if reference else None
        if payment is None:
            raise NotFound("Paiement introuvable", code="payment_not_found")
        return payment
