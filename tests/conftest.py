import json
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Generator, List, Optional

import pytest
from fastapi.testclient import TestClient

# Configuration de test avant tout import de paygate (config lue à l'import)
os.environ.setdefault("PAYSTACK_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("PAYSTACK_WEBHOOK_SECRET", "whsec_test_dummy")
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")
os.environ.setdefault("DISABLE_BACKGROUND_TASKS", "1")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from paygate.app_setup.factory import create_app
from paygate.dependencies import build_workflow, get_workflow
from paygate.errors import UpstreamFailure
from paygate.notifications.email import EmailMessage, EmailSender
from paygate.payments.signature import compute_signature

WEBHOOK_SECRET = "whsec_unit_tests"
SIGNUP_URL = "https://app.example.com/signup"


# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)
        elif "tests/functional/" in nodeid:
            item.add_marker(pytest.mark.functional)


class FakeClock:
    """Horloge contrôlée par les tests (expiration des jetons, backoff outbox)."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeProvider:
    """Remplace PaystackClient: enregistre les appels, renvoie une URL de checkout."""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.error: Optional[Exception] = None
        self.closed = False

    def initialize_transaction(self, **kwargs) -> Dict[str, Any]:
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return {
            "authorization_url": f"https://checkout.paystack.com/{kwargs['reference']}",
            "access_code": "ac_test",
            "reference": kwargs["reference"],
        }

    def close(self) -> None:
        self.closed = True


class RecordingSender(EmailSender):
    def __init__(self, failures: int = 0):
        self.sent: List[EmailMessage] = []
        self.failures = failures

    def send(self, message: EmailMessage) -> None:
        if self.failures > 0:
            self.failures -= 1
            raise ConnectionError("smtp down")
        self.sent.append(message)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def workflow(provider, sender, clock):
    return build_workflow(
        provider=provider,
        sender=sender,
        clock=clock,
        webhook_secret=WEBHOOK_SECRET,
        signup_url=SIGNUP_URL,
        callback_url="https://app.example.com/payment-callback",
        expose_token_on_status=True,
    )


@pytest.fixture
def app(workflow):
    fastapi_app = create_app()
    fastapi_app.dependency_overrides[get_workflow] = lambda: workflow
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c


@pytest.fixture
def webhook_body():
    """Construit le body brut d'un événement Paystack."""
    def _make(event: str, reference: Optional[str], **data) -> bytes:
        payload: Dict[str, Any] = {"reference": reference, **data} if reference is not None else dict(data)
        return json.dumps({"event": event, "data": payload}).encode("utf-8")
    return _make


@pytest.fixture
def sign():
    def _sign(raw_body: bytes, secret: str = WEBHOOK_SECRET) -> str:
        return compute_signature(raw_body, secret)
    return _sign


@pytest.fixture
def post_webhook(client, sign):
    """POST signé sur /pay/webhook/url avec le body brut tel quel."""
    def _post(raw_body: bytes, signature: Optional[str] = None):
        headers = {
            "content-type": "application/json",
            "x-paystack-signature": signature if signature is not None else sign(raw_body),
        }
        return client.post("/pay/webhook/url", content=raw_body, headers=headers)
    return _post


@pytest.fixture
def provider_unreachable(provider):
    provider.error = UpstreamFailure("Paystack injoignable", code="provider_unreachable")
    return provider


@pytest.fixture
def make_sender():
    """Fabrique d'EmailSender enregistreur; failures = nombre d'échecs avant succès."""
    return RecordingSender
