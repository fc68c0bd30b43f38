"""Dépendances partagées: instance unique du SignupWorkflow pour le process.
Les stores sont en mémoire et appartiennent au process; les tests remplacent
get_workflow via app.dependency_overrides.
"""
from datetime import datetime, timedelta
from typing import Callable, Optional

from paygate import config
from paygate.infra.clock import utcnow
from paygate.infra.ids import IdGenerator
from paygate.infra.store import InMemoryStore
from paygate.notifications.email import EmailSender, LoggingEmailSender
from paygate.notifications.outbox import Outbox
from paygate.payments.ledger import PaymentLedger
from paygate.payments.paystack_client import PaystackClient
from paygate.signup.service import SignupWorkflow
from paygate.signup.tokens import AuthorizationIssuer
from paygate.users.repository import UserRepository

_workflow: Optional[SignupWorkflow] = None

def build_workflow(
    provider=None,
    sender: Optional[EmailSender] = None,
    clock: Callable[[], datetime] = utcnow,
    **overrides,
) -> SignupWorkflow:
    """
    Assemble ledger, émetteur de jetons, comptes et outbox autour de stores en mémoire.
    - provider: client Paystack par défaut (PAYSTACK_SECRET_KEY)
    - sender: envoi d'emails simulé par défaut
    - clock: horloge partagée par tous les composants
    """
    ids = IdGenerator()
    ledger = PaymentLedger(InMemoryStore(), ids=ids, clock=clock)
    issuer = AuthorizationIssuer(
        InMemoryStore(),
        ledger,
        ids=ids,
        clock=clock,
        default_ttl=timedelta(minutes=config.SIGNUP_TOKEN_TTL_MINUTES),
    )
    outbox = Outbox(
        InMemoryStore(),
        sender or LoggingEmailSender(),
        clock=clock,
        max_attempts=config.OUTBOX_MAX_ATTEMPTS,
        retry_base_seconds=config.OUTBOX_RETRY_BASE_SECONDS,
    )
    options = {
        "webhook_secret": config.PAYSTACK_WEBHOOK_SECRET,
        "callback_url": config.PAYMENT_CALLBACK_URL,
        "signup_url": config.SIGNUP_URL,
        "expose_token_on_status": config.STATUS_EXPOSES_SIGNUP_TOKEN,
    }
    options.update(overrides)
    return SignupWorkflow(
        ledger=ledger,
        issuer=issuer,
        users=UserRepository(InMemoryStore()),
        outbox=outbox,
        provider=provider or PaystackClient(config.PAYSTACK_SECRET_KEY),
        ids=ids,
        clock=clock,
        **options,
    )

def get_workflow() -> SignupWorkflow:
    global _workflow
    if _workflow is None:
        _workflow = build_workflow()
    return _workflow

def reset_workflow() -> None:
    global _workflow
    _workflow = None
