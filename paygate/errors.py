"""
Erreurs métier du parcours paiement -> inscription.
Chaque erreur porte un message lisible et un code machine; le statut HTTP est
déterminé par la classe (voir app_setup/exceptions.py).
"""
from typing import Optional


class SignupFlowError(Exception):
    status_code = 400
    default_code = "invalid_input"

    def __init__(self, message: str, code: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        if status_code is not None:
            self.status_code = status_code


class InvalidInput(SignupFlowError):
    status_code = 400
    default_code = "invalid_input"


class Unauthorized(SignupFlowError):
    status_code = 401
    default_code = "unauthorized"


class NotFound(SignupFlowError):
    status_code = 404
    default_code = "not_found"


class Conflict(SignupFlowError):
    status_code = 409
    default_code = "conflict"


class UpstreamFailure(SignupFlowError):
    """Échec de l'API du prestataire de paiement (502, ou 400 si la demande est refusée)."""
    status_code = 502
    default_code = "upstream_failure"
