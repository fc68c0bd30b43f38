# paygate.config
from pathlib import Path
import os
from typing import List
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH)

"""
Configuration centrale du service.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets Paystack (clé API, secret de signature webhook)
- Expose les réglages du parcours paiement -> inscription (TTL du jeton, reaper, outbox)
- Sécurité: CORS/hosts, coût bcrypt, politique d'exposition du jeton
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _env_int(name: str, default: int) -> int:
    raw = _clean_env(os.getenv(name) or "")
    try:
        return int(raw) if raw else default
    except ValueError:
        return default

def _env_float(name: str, default: float) -> float:
    raw = _clean_env(os.getenv(name) or "")
    try:
        return float(raw) if raw else default
    except ValueError:
        return default

def _env_bool(name: str, default: bool) -> bool:
    raw = _clean_env(os.getenv(name) or "").lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")

# Paystack: secret de signature des webhooks et clé API secrète
# - SECRET est l'ancien nom de variable, encore accepté
PAYSTACK_WEBHOOK_SECRET = _clean_env(os.getenv("PAYSTACK_WEBHOOK_SECRET") or os.getenv("SECRET") or "")
PAYSTACK_SECRET_KEY = _clean_env(os.getenv("PAYSTACK_SECRET_KEY") or "")
PAYSTACK_BASE_URL = _clean_env(os.getenv("PAYSTACK_BASE_URL") or "https://api.paystack.co").rstrip("/")
PAYSTACK_TIMEOUT_SECONDS = _env_float("PAYSTACK_TIMEOUT_SECONDS", 10.0)
PAYSTACK_MAX_RETRIES = _env_int("PAYSTACK_MAX_RETRIES", 2)
PAYSTACK_SIGNATURE_HEADER = "x-paystack-signature"

BASE_URL = _clean_env(os.getenv("BASE_URL") or "http://localhost:8000").rstrip("/")

# Redirection après le checkout hébergé, et lien d'inscription envoyé par email
PAYMENT_CALLBACK_URL = _clean_env(os.getenv("PAYMENT_CALLBACK_URL") or f"{BASE_URL}/payment-callback")
SIGNUP_URL = _clean_env(os.getenv("SIGNUP_URL") or f"{BASE_URL}/signup")

# Jetons d'inscription: durée de vie et fréquence du nettoyage
SIGNUP_TOKEN_TTL_MINUTES = _env_int("SIGNUP_TOKEN_TTL_MINUTES", 30)
TOKEN_REAPER_INTERVAL_SECONDS = _env_int("TOKEN_REAPER_INTERVAL_SECONDS", 60 * 60)

# Outbox (emails): fréquence de traitement et nombre maximal de tentatives
OUTBOX_POLL_SECONDS = _env_int("OUTBOX_POLL_SECONDS", 15)
OUTBOX_MAX_ATTEMPTS = _env_int("OUTBOX_MAX_ATTEMPTS", 5)
OUTBOX_RETRY_BASE_SECONDS = _env_int("OUTBOX_RETRY_BASE_SECONDS", 30)

# GET /check-payment-status renvoie-t-il le jeton actif ? (voir DESIGN.md)
STATUS_EXPOSES_SIGNUP_TOKEN = _env_bool("STATUS_EXPOSES_SIGNUP_TOKEN", True)

# Hash des mots de passe
BCRYPT_ROUNDS = _env_int("BCRYPT_ROUNDS", 12)

# Cookies/ Sécurité
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")

# CORS (dev)
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h.strip()]

def missing_required_config() -> List[str]:
    """Liste les variables obligatoires absentes (secret webhook, clé API Paystack)."""
    missing: List[str] = []
    if not PAYSTACK_WEBHOOK_SECRET:
        missing.append("PAYSTACK_WEBHOOK_SECRET")
    if not PAYSTACK_SECRET_KEY:
        missing.append("PAYSTACK_SECRET_KEY")
    return missing

def validate_required_config() -> None:
    """
    Vérifie la configuration au démarrage du process.
    - Une absence est fatale (RuntimeError), jamais une erreur par requête.
    """
    missing = missing_required_config()
    if missing:
        raise RuntimeError(f"Configuration manquante: {', '.join(missing)}")
