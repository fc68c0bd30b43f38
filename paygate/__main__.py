"""Lancement local: python -m paygate (PORT, UVICORN_RELOAD, LOG_LEVEL)."""
import os

import uvicorn

from paygate import config


def main() -> None:
    config.validate_required_config()
    uvicorn.run(
        "paygate.asgi:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("UVICORN_RELOAD", "0") == "1",
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()
