"""
Générateur d'identifiants non devinables (références de paiement, jetons d'inscription, ids utilisateur).
Injecté dans le ledger, l'émetteur de jetons et le workflow pour rester testable.
"""
import secrets
import time
from uuid import uuid4


class IdGenerator:
    def __init__(self, reference_bytes: int = 16, token_bytes: int = 32):
        self.reference_bytes = reference_bytes
        self.token_bytes = token_bytes

    def payment_reference(self) -> str:
        # horodatage haute résolution + aléa cryptographique (longueur fixe)
        return f"pay_{time.time_ns()}_{secrets.token_hex(self.reference_bytes)}"

    def signup_token(self) -> str:
        return secrets.token_urlsafe(self.token_bytes)

    def user_id(self) -> str:
        return str(uuid4())
