"""
Adaptateur Paystack: centralise les appels à l'API (initialisation de transaction).
- Timeout par requête; statuts transitoires (429, 5xx) et erreurs de transport réessayés
  un nombre borné de fois, avec backoff exponentiel et respect de Retry-After.
- Toute erreur est convertie en UpstreamFailure (400 si Paystack refuse, 502 sinon).
"""
import logging
import random
import time
from typing import Any, Dict, Optional

import httpx

from paygate import config
from paygate.errors import UpstreamFailure

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
RETRY_BASE_DELAY = 0.5
RETRY_MAX_DELAY = 8.0
RETRY_JITTER = 0.3


def _retry_delay(attempt: int, retry_after: Optional[str] = None) -> float:
    if retry_after:
        try:
            return min(float(retry_after), RETRY_MAX_DELAY)
        except ValueError:
            pass
    delay = min(RETRY_BASE_DELAY * (2 ** attempt), RETRY_MAX_DELAY)
    return delay + delay * RETRY_JITTER * random.random()


class PaystackClient:
    def __init__(
        self,
        secret_key: str,
        base_url: str = config.PAYSTACK_BASE_URL,
        timeout: float = config.PAYSTACK_TIMEOUT_SECONDS,
        max_retries: int = config.PAYSTACK_MAX_RETRIES,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        if not secret_key:
            raise ValueError("PAYSTACK_SECRET_KEY manquant")
        self.max_retries = max_retries
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {secret_key}",
                "Content-Type": "application/json",
            },
        )

    def _post(self, endpoint: str, payload: Dict[str, Any]) -> httpx.Response:
        """
        POST JSON avec au plus max_retries nouvelles tentatives.
        - Statut transitoire persistant: HTTPStatusError levée à la dernière tentative
        - Erreur de transport persistante: propagée telle quelle
        - Toute autre réponse (succès ou refus Paystack) est renvoyée sans nouvelle tentative
        """
        attempt = 0
        while True:
            try:
                response = self._client.post(endpoint, json=payload)
            except httpx.TransportError as e:
                if attempt >= self.max_retries:
                    raise
                reason = type(e).__name__
                delay = _retry_delay(attempt)
            else:
                if response.status_code not in RETRYABLE_STATUS_CODES:
                    return response
                if attempt >= self.max_retries:
                    response.raise_for_status()
                reason = f"HTTP {response.status_code}"
                delay = _retry_delay(attempt, response.headers.get("retry-after"))
            attempt += 1
            logger.warning("paystack retry %d/%d %s (%s), waiting %.1fs",
                           attempt, self.max_retries, endpoint, reason, delay)
            time.sleep(delay)

    def initialize_transaction(
        self,
        *,
        email: str,
        amount: int,
        reference: str,
        metadata: Dict[str, Any],
        callback_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Crée une transaction Paystack (checkout hébergé) liée à notre référence.
        - amount: entier en unité mineure, transmis tel quel
        Retour: {"authorization_url", "access_code", "reference"}
        """
        payload: Dict[str, Any] = {
            "email": email,
            "amount": amount,
            "reference": reference,
            "metadata": metadata,
        }
        if callback_url:
            payload["callback_url"] = callback_url

        try:
            response = self._post("/transaction/initialize", payload)
        except httpx.HTTPStatusError as e:
            logger.error("paystack.initialize unavailable reference=%s status=%s", reference, e.response.status_code)
            raise UpstreamFailure(
                f"Paystack indisponible (HTTP {e.response.status_code})", code="provider_unavailable"
            )
        except httpx.TransportError as e:
            logger.error("paystack.initialize unreachable reference=%s error=%s", reference, type(e).__name__)
            raise UpstreamFailure("Paystack injoignable", code="provider_unreachable")

        try:
            body = response.json()
        except ValueError:
            raise UpstreamFailure("Réponse Paystack invalide", code="provider_bad_response")
        if not isinstance(body, dict):
            raise UpstreamFailure("Réponse Paystack invalide", code="provider_bad_response")

        if not response.is_success or not body.get("status"):
            message = body.get("message") or f"HTTP {response.status_code}"
            logger.warning("paystack.initialize rejected reference=%s message=%s", reference, message)
            raise UpstreamFailure(
                f"Échec de l'initialisation du paiement: {message}",
                code="provider_rejected",
                status_code=400,
            )

        data = body.get("data") or {}
        if not data.get("authorization_url"):
            raise UpstreamFailure("Réponse Paystack sans authorization_url", code="provider_bad_response")
        return {
            "authorization_url": data["authorization_url"],
            "access_code": data.get("access_code"),
            "reference": data.get("reference") or reference,
        }

    def close(self) -> None:
        self._client.close()
