"""
Vérification des notifications Paystack (en-tête x-paystack-signature).
- HMAC-SHA512 calculé sur les octets bruts du body, jamais sur un JSON re-sérialisé.
- Comparaison en temps constant; une entrée absente est un échec, pas une exception.
"""
import hashlib
import hmac
import secrets
from typing import Optional, Union

# module paygate.payments.signature
def compute_signature(raw_body: bytes, secret: Union[bytes, str]) -> str:
    """Retourne le digest hexadécimal HMAC-SHA512 de raw_body."""
    key = secret.encode("utf-8") if isinstance(secret, str) else secret
    return hmac.new(key, raw_body, hashlib.sha512).hexdigest()

def verify(raw_body: Optional[bytes], provided_signature: Optional[str], secret: Union[bytes, str, None]) -> bool:
    if not raw_body or not provided_signature or not secret:
        return False
    expected = compute_signature(raw_body, secret)
    return secrets.compare_digest(expected.encode("ascii"), provided_signature.strip().encode("utf-8"))
