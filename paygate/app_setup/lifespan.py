"""
Lifespan FastAPI: initialisation/arrêt des ressources partagées.
- Valide la configuration requise (secrets Paystack) avant d'accepter du trafic.
- Initialise FastAPILimiter (Redis) avec options de test (fakeredis).
- Démarre les tâches de fond: purge horaire des jetons expirés et envoi de l'outbox.
Variables d'environnement supportées:
  - DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS=1: désactive complètement le rate limiting (tests)
  - USE_FAKE_REDIS_FOR_TESTS=1: utilise fakeredis (tests)
  - LOCAL_RATE_LIMIT_FALLBACK=1: active un fallback local si l'init échoue
  - DISABLE_BACKGROUND_TASKS=1: pas de reaper ni d'outbox en tâche de fond (tests)
"""
import asyncio
import logging
import os
from contextlib import asynccontextmanager

import redis.asyncio as redis
from fastapi import FastAPI
from fastapi_limiter import FastAPILimiter

from paygate import config
from paygate.dependencies import get_workflow, reset_workflow

try:
    from fakeredis.aioredis import FakeRedis  # tests only
except Exception:
    FakeRedis = None

logger = logging.getLogger("uvicorn.error")


def _resolve_workflow(app: FastAPI):
    provider = app.dependency_overrides.get(get_workflow, get_workflow)
    return provider()


def _close_provider(workflow) -> None:
    close = getattr(getattr(workflow, "provider", None), "close", None)
    if callable(close):
        try:
            close()
        except Exception:
            logger.exception("provider close failed")


async def _periodic(name: str, interval: float, job) -> None:
    """Exécute job() dans un thread toutes les `interval` secondes jusqu'à annulation."""
    while True:
        await asyncio.sleep(interval)
        try:
            result = await asyncio.to_thread(job)
            if result:
                logger.info("background %s processed=%s", name, result)
        except Exception:
            logger.exception("background %s failed", name)


async def _init_rate_limiter(app: FastAPI) -> None:
    if os.getenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS") == "1":
        app.state.rate_limit_enabled = False
        logger.info("Rate limiting disabled by DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS")
        return
    try:
        if os.getenv("USE_FAKE_REDIS_FOR_TESTS") == "1":
            if not FakeRedis:
                raise RuntimeError("USE_FAKE_REDIS_FOR_TESTS=1 mais fakeredis n'est pas installé.")
            r = FakeRedis(decode_responses=True)
        else:
            redis_url = os.getenv("RATE_LIMIT_REDIS_URL", "redis://127.0.0.1:6379/0")
            r = redis.from_url(redis_url, encoding="utf-8", decode_responses=True)

        await FastAPILimiter.init(r)
        app.state.rate_limit_enabled = True
        logger.info("Rate limiting enabled")
    except Exception as e:
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            app.state.rate_limit_enabled = True
            logger.warning(f"Rate limiting falling back to local in-memory due to init error: {e}")
        else:
            app.state.rate_limit_enabled = False
            logger.warning(f"Rate limiting disabled due to init error: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    - Configuration manquante: RuntimeError au démarrage (pas de service à moitié configuré).
    - Redis indisponible sans fallback: rate limiting désactivé proprement.
    - Tâches de fond annulées à l'arrêt, puis client Paystack fermé.
    """
    config.validate_required_config()
    await _init_rate_limiter(app)

    workflow = _resolve_workflow(app)
    tasks = []
    if os.getenv("DISABLE_BACKGROUND_TASKS") != "1":
        tasks.append(asyncio.create_task(
            _periodic("token_reaper", config.TOKEN_REAPER_INTERVAL_SECONDS, workflow.reap_expired_tokens)
        ))
        tasks.append(asyncio.create_task(
            _periodic("outbox", config.OUTBOX_POLL_SECONDS, workflow.process_outbox)
        ))
        logger.info("Background tasks started: token_reaper every %ss, outbox every %ss",
                    config.TOKEN_REAPER_INTERVAL_SECONDS, config.OUTBOX_POLL_SECONDS)
    try:
        yield
    finally:
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        if getattr(app.state, "rate_limit_enabled", False) and getattr(FastAPILimiter, "redis", None) is not None:
            await FastAPILimiter.close()
        _close_provider(workflow)
        if get_workflow not in app.dependency_overrides:
            # Instance du process libérée avec son client HTTP
            reset_workflow()
