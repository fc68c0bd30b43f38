from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


class SignupAuthorization(BaseModel):
    """Jeton d'inscription: une seule utilisation, avant expires_at, pour l'email lié."""
    model_config = ConfigDict(frozen=True)

    token: str
    email: str
    plan: str
    payment_reference: str
    issued_at: datetime
    expires_at: datetime
    used: bool = False
    used_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


class RedeemOutcome(str, Enum):
    OK = "ok"
    EXPIRED = "expired"
    ALREADY_USED = "already_used"
    NOT_FOUND = "not_found"
    EMAIL_MISMATCH = "email_mismatch"


class Redemption(BaseModel):
    model_config = ConfigDict(frozen=True)

    outcome: RedeemOutcome
    authorization: Optional[SignupAuthorization] = None

    @property
    def ok(self) -> bool:
        return self.outcome == RedeemOutcome.OK


class User(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    full_name: str
    phone: Optional[str] = None
    plan: str
    payment_reference: str
    created_at: datetime
    status: str = "active"
    password_hash: str

    def public_view(self) -> Dict[str, Any]:
        # Jamais le hash
        return {
            "id": self.id,
            "email": self.email,
            "fullName": self.full_name,
            "planType": self.plan,
        }
