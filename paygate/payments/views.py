# module paygate.payments.views

"""Endpoints paiement du parcours d'inscription.
- /initiate-payment: enregistre le paiement et renvoie l'URL du checkout Paystack (rate-limité).
- /pay/webhook/url: reçoit les notifications Paystack (signature x-paystack-signature).
- /check-payment-status: statut d'un paiement par référence (polling de la page de retour).
Les erreurs métier (paygate.errors) sont converties en JSON par app_setup/exceptions.py.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from paygate import config
from paygate.dependencies import get_workflow
from paygate.signup.service import SignupWorkflow
from paygate.utils.rate_limit import optional_rate_limit

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Payments"])


class InitiatePaymentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr
    amount: int = Field(gt=0)
    plan_type: str = Field(alias="planType", min_length=1)
    metadata: Optional[Dict[str, Any]] = None


@router.post("/initiate-payment", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def initiate_payment(req: InitiatePaymentRequest, workflow: SignupWorkflow = Depends(get_workflow)):
    """
    Étape 1: paiement avant inscription.
    - Body: {email, amount, planType, metadata?} (amount en unité mineure)
    - Réponse: {success, paymentUrl, reference, message}
    - Erreurs: 400 champs manquants ou refus Paystack, 502 Paystack injoignable
    """
    result = workflow.initiate(req.email, req.amount, req.plan_type, req.metadata)
    logger.info("payments.initiate reference=%s plan=%s", result["reference"], req.plan_type)
    return result


@router.post("/pay/webhook/url", include_in_schema=False)
async def paystack_webhook(request: Request, workflow: SignupWorkflow = Depends(get_workflow)):
    """
    Webhook Paystack.
    - Signature: HMAC-SHA512 du body brut (jamais re-sérialisé) comparé à x-paystack-signature
    - Réponses: 200 {"received": true} (y compris événements inconnus), 401 signature invalide,
      400 body vide ou JSON invalide
    """
    raw_body = await request.body()
    signature = request.headers.get(config.PAYSTACK_SIGNATURE_HEADER)
    # Traitement synchrone (verrous des stores) hors de la boucle d'événements
    result = await asyncio.to_thread(workflow.handle_provider_notification, raw_body, signature)
    return JSONResponse(result, status_code=200)


@router.get("/check-payment-status")
def check_payment_status(reference: Optional[str] = None, workflow: SignupWorkflow = Depends(get_workflow)):
    """Statut public du paiement; inclut signupToken si un jeton actif existe et que la politique l'autorise."""
    return workflow.check_status(reference)
