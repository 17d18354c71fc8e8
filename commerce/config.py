# commerce.config
from pathlib import Path
from datetime import timedelta
from typing import List
import os
import re
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=False)

"""
Configuration centrale du backend.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Stripe, JWT)
- Expose les paramètres de stockage, de sauvegarde planifiée et de rate limiting
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _split_env(name: str, default: str) -> List[str]:
    return [p.strip() for p in os.getenv(name, default).split(",") if p.strip()]

def parse_duration(value: str) -> timedelta:
    """
    Convertit une durée style "7d", "12h", "30m", "45s" (ou un nombre de secondes) en timedelta.
    Lève ValueError si le format n'est pas reconnu.
    """
    raw = _clean_env(value).lower()
    if raw.isdigit():
        return timedelta(seconds=int(raw))
    m = re.fullmatch(r"(\d+)\s*([dhms])", raw)
    if not m:
        raise ValueError(f"Durée invalide: {value!r}")
    amount, unit = int(m.group(1)), m.group(2)
    return {
        "d": timedelta(days=amount),
        "h": timedelta(hours=amount),
        "m": timedelta(minutes=amount),
        "s": timedelta(seconds=amount),
    }[unit]

# Serveur
ENVIRONMENT = _clean_env(os.getenv("ENVIRONMENT") or os.getenv("NODE_ENV") or "development")
PORT = int(os.getenv("PORT", "8000"))

# JWT: secret, algorithme et durée de vie des jetons clients
JWT_SECRET = _clean_env(os.getenv("JWT_SECRET") or "")
JWT_ALGORITHM = _clean_env(os.getenv("JWT_ALGORITHM") or "HS256")
JWT_EXPIRY = _clean_env(os.getenv("JWT_EXPIRY") or "7d")
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "10"))

# Stripe: clé privée et version d'API figée (invoice.payment_intent présent jusqu'à acacia)
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or "")
STRIPE_API_VERSION = _clean_env(os.getenv("STRIPE_API_VERSION") or "2024-11-20.acacia")

# Supabase: URL et clé de service (opérations privilégiées côté serveur)
# - SUPABASE_URL peut parfois être sans schéma: on préfixe en https:// si nécessaire
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")
CUSTOMERS_TABLE = _clean_env(os.getenv("CUSTOMERS_TABLE") or "customers")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Stockage objet (bucket Supabase Storage)
STORAGE_BUCKET = _clean_env(os.getenv("STORAGE_BUCKET") or "")
SIGNED_URL_TTL = int(os.getenv("SIGNED_URL_TTL", "3600"))
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))

# CORS / hôtes / HSTS
CORS_ORIGINS = _split_env("CORS_ORIGINS", "http://localhost:3000")
ALLOWED_HOSTS = _split_env("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver")
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")

# Rate limiting (fastapi-limiter)
RATE_LIMIT_REDIS_URL = _clean_env(os.getenv("RATE_LIMIT_REDIS_URL") or "redis://127.0.0.1:6379/0")

# Sauvegardes planifiées (export quotidien des tables vers le stockage)
BACKUP_ENABLED = (os.getenv("BACKUP_ENABLED", "false").lower() == "true")
BACKUP_HOUR = int(os.getenv("BACKUP_HOUR", "23"))
BACKUP_TABLES = _split_env("BACKUP_TABLES", CUSTOMERS_TABLE)
BACKUP_RETENTION_DAYS = int(os.getenv("BACKUP_RETENTION_DAYS", "10"))

REQUIRED_SETTINGS = ("JWT_SECRET", "STRIPE_SECRET_KEY")

def is_production() -> bool:
    return ENVIRONMENT.lower() == "production"

def missing_required_settings() -> List[str]:
    """Liste les variables obligatoires absentes (vérifiée au démarrage par le lifespan)."""
    values = {"JWT_SECRET": JWT_SECRET, "STRIPE_SECRET_KEY": STRIPE_SECRET_KEY}
    return [name for name in REQUIRED_SETTINGS if not values.get(name)]
