"""
Lecture des événements Paystack (webhook) une fois la signature validée.
"""
import json
from typing import Any, Dict, Optional, Tuple

from paygate.errors import InvalidInput

CHARGE_SUCCESS = "charge.success"
CHARGE_FAILED = "charge.failed"

# module paygate.payments.events
def parse_event(raw_body: bytes) -> Tuple[str, Dict[str, Any]]:
    """
    Décode le body brut en (event_type, data).
    - Attend {"event": "<type>", "data": {...}}
    - InvalidInput si le JSON est invalide ou si la forme n'est pas celle d'un événement.
    """
    try:
        event = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError):
        raise InvalidInput("Payload JSON invalide", code="malformed_json")
    if not isinstance(event, dict) or not isinstance(event.get("event"), str):
        raise InvalidInput("Événement Paystack invalide", code="malformed_event")
    data = event.get("data")
    return event["event"], data if isinstance(data, dict) else {}

def extract_reference(data: Dict[str, Any]) -> Optional[str]:
    reference = (data or {}).get("reference")
    if reference is None:
        return None
    return str(reference).strip() or None

def extract_transaction_id(data: Dict[str, Any]) -> Optional[str]:
    tx_id = (data or {}).get("id")
    return str(tx_id) if tx_id is not None else None

def extract_failure_reason(data: Dict[str, Any]) -> Optional[str]:
    return (data or {}).get("gateway_response") or (data or {}).get("message") or None

def extract_provider_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Détails conservés pour l'audit (montant, devise, canal, date de paiement, client).
    - Tolérant: les champs absents sont ignorés.
    """
    data = data or {}
    customer = data.get("customer") if isinstance(data.get("customer"), dict) else {}
    authorization = data.get("authorization") if isinstance(data.get("authorization"), dict) else {}
    details = {
        "amount": data.get("amount"),
        "currency": data.get("currency"),
        "channel": data.get("channel") or authorization.get("channel"),
        "paid_at": data.get("paid_at"),
        "customer_email": customer.get("email"),
        "customer_code": customer.get("customer_code"),
    }
    return {k: v for k, v in details.items() if v is not None}
