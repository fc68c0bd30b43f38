from typing import Optional
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from paygate.dependencies import get_workflow
from paygate.signup.service import SignupWorkflow
from paygate.utils.rate_limit import optional_rate_limit

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Signup"])


class SignupUserData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    full_name: Optional[str] = Field(default=None, alias="fullName")
    password: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class SignupRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    signup_token: Optional[str] = Field(default=None, alias="signupToken")
    user_data: Optional[SignupUserData] = Field(default=None, alias="userData")


@router.post("/signup", dependencies=[Depends(optional_rate_limit(times=5, seconds=60))])
def signup(req: SignupRequest, workflow: SignupWorkflow = Depends(get_workflow)):
    """Étape 3: création du compte avec le jeton reçu après paiement.
    - Body: {signupToken, userData: {fullName, password, phone?, email?}}
    - Les champs sont optionnels côté schéma pour renvoyer missing_token / missing_fields.
    - Erreurs: 400 champs manquants, 401 jeton invalide/expiré/utilisé, 409 compte existant.
    """
    user_data = req.user_data or SignupUserData()
    user = workflow.submit_signup(
        req.signup_token,
        user_data.full_name,
        user_data.password,
        phone=user_data.phone,
        email=user_data.email,
    )
    return {"success": True, "message": "Compte créé avec succès", "user": user}
