"""
Modèles du domaine 'payments': tentative de paiement et issues de résolution.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PendingPayment(BaseModel):
    """
    Tentative de paiement identifiée par sa référence.
    - signup_allowed est dérivé du statut: vrai si et seulement si 'completed'.
    - completed/failed sont terminaux.
    """
    model_config = ConfigDict(frozen=True)

    reference: str
    email: str
    amount: int
    plan: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    status: PaymentStatus = PaymentStatus.PENDING
    created_at: datetime
    resolved_at: Optional[datetime] = None
    transaction_id: Optional[str] = None
    failure_reason: Optional[str] = None
    provider_data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def signup_allowed(self) -> bool:
        return self.status == PaymentStatus.COMPLETED

    @property
    def is_terminal(self) -> bool:
        return self.status in (PaymentStatus.COMPLETED, PaymentStatus.FAILED)

    def public_view(self) -> Dict[str, Any]:
        return {
            "reference": self.reference,
            "status": self.status.value,
            "signupAllowed": self.signup_allowed,
            "email": self.email,
            "planType": self.plan,
        }


class Completed(BaseModel):
    model_config = ConfigDict(frozen=True)

    transaction_id: Optional[str] = None
    provider_data: Dict[str, Any] = Field(default_factory=dict)


class Failed(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: Optional[str] = None
    provider_data: Dict[str, Any] = Field(default_factory=dict)


Outcome = Union[Completed, Failed]


class Resolution(BaseModel):
    """Résultat de PaymentLedger.resolve: transitioned=False si le paiement était déjà terminal."""
    model_config = ConfigDict(frozen=True)

    payment: PendingPayment
    transitioned: bool
