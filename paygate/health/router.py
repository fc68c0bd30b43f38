from fastapi import APIRouter, Depends, Request

from paygate.dependencies import get_workflow
from paygate.signup.service import SignupWorkflow
from paygate.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])

@router.get("")
def health_root():
    return {"ok": True}

@router.get("/signup")
def health_signup(request: Request, workflow: SignupWorkflow = Depends(get_workflow)):
    info = workflow.stats()
    info["rate_limit"] = rate_limit_health_info(request)
    return info
