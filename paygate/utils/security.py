"""
Outils de sécurité transverses.
- hash_password: bcrypt (coût configurable via BCRYPT_ROUNDS)
- mask_secret: jamais de jeton complet dans les logs
"""
from typing import Optional
import bcrypt

from paygate import config

# bcrypt ne prend en compte que les 72 premiers octets
_BCRYPT_MAX_BYTES = 72

def hash_password(password: str, rounds: Optional[int] = None) -> str:
    salt = bcrypt.gensalt(rounds=rounds or config.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8")[:_BCRYPT_MAX_BYTES], salt).decode("utf-8")

def mask_secret(value: Optional[str], visible: int = 6) -> str:
    if not value:
        return ""
    return value[:visible] + "…"
