"""
Module 'payments' (feature-first): point d'entrée public.
Réunit le ledger des paiements, la vérification des webhooks Paystack,
la lecture des événements et le client de l'API Paystack.
"""

from .models import PaymentStatus, PendingPayment, Completed, Failed, Resolution
from .signature import compute_signature, verify
from .events import CHARGE_SUCCESS, CHARGE_FAILED, parse_event
from .ledger import PaymentLedger
from .paystack_client import PaystackClient

__all__ = [
    # models
    "PaymentStatus",
    "PendingPayment",
    "Completed",
    "Failed",
    "Resolution",
    # signature
    "compute_signature",
    "verify",
    # events
    "CHARGE_SUCCESS",
    "CHARGE_FAILED",
    "parse_event",
    # ledger / client
    "PaymentLedger",
    "PaystackClient",
]
