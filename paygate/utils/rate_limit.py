"""
Rate limiting optionnel des endpoints publics (/initiate-payment, /signup).
- Clé: IP cliente + chemin (le parcours d'inscription n'a pas de session).
- fastapi-limiter (Redis) si initialisé par le lifespan, sinon aucune limite.
- LOCAL_RATE_LIMIT_FALLBACK=1: fenêtre glissante en mémoire (dev / tests).
"""
from typing import Any, Dict
from urllib.parse import urlparse
import logging
import os
import time

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)


def client_key(request: Request) -> str:
    ip = request.client.host if request.client else "local"
    return f"ip:{ip}:{request.url.path}"


def optional_rate_limit(times: int, seconds: int):
    async def _dep(request: Request):
        # Forcer le fallback mémoire en DEV si demandé
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            now = time.time()
            key = client_key(request)
            store = getattr(request.app.state, "_rl_store", {})
            hits = [t for t in store.get(key, []) if now - t < seconds]
            if len(hits) >= times:
                raise HTTPException(status_code=429, detail="Trop de requêtes")
            hits.append(now)
            store[key] = hits
            request.app.state._rl_store = store
            return

        # Respecter le flag global posé par le lifespan
        if getattr(request.app.state, "rate_limit_enabled", None) is not True:
            return

        from fastapi_limiter.depends import RateLimiter

        async def _identifier(req: Request) -> str:
            return client_key(req)

        try:
            return await RateLimiter(times=times, seconds=seconds, identifier=_identifier)(request)
        except HTTPException:
            raise
        except Exception as e:
            # Redis indisponible: pas de 429 en prod, l'incident est journalisé
            logger.warning("rate_limit backend error path=%s: %s", request.url.path, e)
            return
    return _dep


def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    enabled = getattr(request.app.state, "rate_limit_enabled", None)

    from fastapi_limiter import FastAPILimiter
    limiter_ready = getattr(FastAPILimiter, "redis", None) is not None
    backend = "redis" if limiter_ready else None
    if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
        backend = "memory"

    info: Dict[str, Any] = {
        "enabled": (bool(enabled) if enabled is not None else None),
        "ready": limiter_ready,
        "backend": backend,
    }

    redis_url = os.getenv("RATE_LIMIT_REDIS_URL")
    if limiter_ready and redis_url:
        p = urlparse(redis_url)
        info["redis"] = {
            "scheme": p.scheme,
            "host": p.hostname,
            "port": p.port,
        }
    return info
