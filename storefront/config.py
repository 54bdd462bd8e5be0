# storefront.config
from dataclasses import dataclass, field
from pathlib import Path
import os
from typing import List
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=False)

"""
Configuration centrale du backend.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Redis, Paystack, MailerSend)
- Expose les délais du pipeline checkout -> paiement (verrou, staging, file, polling)
- Settings: instantané figé de ces valeurs, injecté dans le contexte applicatif
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _env_int(name: str, default: int) -> int:
    try:
        return int(_clean_env(os.getenv(name, "")) or default)
    except ValueError:
        return default

def _env_float(name: str, default: float) -> float:
    try:
        return float(_clean_env(os.getenv(name, "")) or default)
    except ValueError:
        return default

def _env_flag(name: str, default: str = "false") -> bool:
    return _clean_env(os.getenv(name, default)).lower() in ("1", "true", "yes")

def _env_list(name: str, default: str) -> List[str]:
    return [x.strip() for x in os.getenv(name, default).split(",") if x.strip()]

# Supabase: URL et clés
# - SUPABASE_URL peut parfois être sans schéma: on préfixe en https:// si nécessaire
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or "")
SUPABASE_KEY = _clean_env(os.getenv("SUPABASE_KEY") or os.getenv("SUPABASE_ANON_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Redis: cache (verrous, commandes en attente) + file de jobs
REDIS_URL = _clean_env(os.getenv("REDIS_URL") or "redis://127.0.0.1:6379/0")
USE_FAKE_REDIS = _env_flag("USE_FAKE_REDIS")

# Auth (JWT émis par le service d'authentification)
JWT_SECRET = _clean_env(os.getenv("JWT_SECRET") or "")

# Paystack: clé secrète (sert aussi à signer les webhooks)
PAYSTACK_SECRET_KEY = _clean_env(os.getenv("PAYSTACK_SECRET_KEY") or os.getenv("PAYSTACK_TEST_SECRET") or "")
PAYSTACK_BASE_URL = _clean_env(os.getenv("PAYSTACK_BASE_URL") or "https://api.paystack.co").rstrip("/")
PAYSTACK_CURRENCY = _clean_env(os.getenv("PAYSTACK_CURRENCY") or "KES")
PAYSTACK_CHANNELS = _env_list("PAYSTACK_CHANNELS", "card,mobile_money")
PAYSTACK_CALLBACK_URL = _clean_env(os.getenv("PAYSTACK_CALLBACK_URL") or "")
PAYSTACK_TIMEOUT_SECONDS = _env_float("PAYSTACK_TIMEOUT_SECONDS", 5.0)

# Pipeline checkout -> paiement
IDEMPOTENCY_TTL_SECONDS = _env_int("IDEMPOTENCY_TTL_SECONDS", 300)
STAGED_ORDER_TTL_SECONDS = _env_int("STAGED_ORDER_TTL_SECONDS", 3600)
PAYMENT_JOB_WAIT_SECONDS = _env_float("PAYMENT_JOB_WAIT_SECONDS", 3.0)
PAYMENT_JOB_ATTEMPTS = _env_int("PAYMENT_JOB_ATTEMPTS", 2)
PAYMENT_JOB_BACKOFF_SECONDS = _env_float("PAYMENT_JOB_BACKOFF_SECONDS", 1.0)
QUEUE_LEASE_SECONDS = _env_float("QUEUE_LEASE_SECONDS", 30.0)
RUN_WORKER_IN_PROCESS = _env_flag("RUN_WORKER_IN_PROCESS", "true")

# Polling de vérification (Paystack /transaction/verify)
POLL_INITIAL_DELAY_SECONDS = _env_float("POLL_INITIAL_DELAY_SECONDS", 15.0)
POLL_MAX_RETRIES = _env_int("POLL_MAX_RETRIES", 10)
POLL_BASE_DELAY_SECONDS = _env_float("POLL_BASE_DELAY_SECONDS", 3.0)
POLL_STEP_SECONDS = _env_float("POLL_STEP_SECONDS", 2.0)
POLL_MAX_DELAY_SECONDS = _env_float("POLL_MAX_DELAY_SECONDS", 15.0)
POLL_ERROR_DELAY_SECONDS = _env_float("POLL_ERROR_DELAY_SECONDS", 5.0)

# E-mails transactionnels (MailerSend)
MAILERSEND_API_KEY = _clean_env(os.getenv("MAILERSEND_API_KEY") or "")
MAILERSEND_FROM_EMAIL = _clean_env(os.getenv("MAILERSEND_FROM_EMAIL") or "")
MAILERSEND_FROM_NAME = _clean_env(os.getenv("MAILERSEND_FROM_NAME") or "Aura-care Beauty")

# CORS (dev)
CORS_ORIGINS = _env_list("CORS_ORIGINS", "*")
ALLOWED_HOSTS = _env_list("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver")


@dataclass(frozen=True)
class Settings:
    """Instantané de la configuration, injecté dans AppContext (tests: valeurs custom)."""
    supabase_url: str = SUPABASE_URL
    supabase_key: str = SUPABASE_SERVICE_KEY or SUPABASE_KEY
    redis_url: str = REDIS_URL
    use_fake_redis: bool = USE_FAKE_REDIS
    jwt_secret: str = JWT_SECRET
    paystack_secret_key: str = PAYSTACK_SECRET_KEY
    paystack_base_url: str = PAYSTACK_BASE_URL
    paystack_currency: str = PAYSTACK_CURRENCY
    paystack_channels: List[str] = field(default_factory=lambda: list(PAYSTACK_CHANNELS))
    paystack_callback_url: str = PAYSTACK_CALLBACK_URL
    paystack_timeout_seconds: float = PAYSTACK_TIMEOUT_SECONDS
    idempotency_ttl_seconds: int = IDEMPOTENCY_TTL_SECONDS
    staged_order_ttl_seconds: int = STAGED_ORDER_TTL_SECONDS
    payment_job_wait_seconds: float = PAYMENT_JOB_WAIT_SECONDS
    payment_job_attempts: int = PAYMENT_JOB_ATTEMPTS
    payment_job_backoff_seconds: float = PAYMENT_JOB_BACKOFF_SECONDS
    queue_lease_seconds: float = QUEUE_LEASE_SECONDS
    run_worker_in_process: bool = RUN_WORKER_IN_PROCESS
    poll_initial_delay_seconds: float = POLL_INITIAL_DELAY_SECONDS
    poll_max_retries: int = POLL_MAX_RETRIES
    poll_base_delay_seconds: float = POLL_BASE_DELAY_SECONDS
    poll_step_seconds: float = POLL_STEP_SECONDS
    poll_max_delay_seconds: float = POLL_MAX_DELAY_SECONDS
    poll_error_delay_seconds: float = POLL_ERROR_DELAY_SECONDS
    mailersend_api_key: str = MAILERSEND_API_KEY
    mailersend_from_email: str = MAILERSEND_FROM_EMAIL
    mailersend_from_name: str = MAILERSEND_FROM_NAME
