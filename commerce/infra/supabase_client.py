from typing import Optional
from supabase import create_client, Client
from commerce.config import SUPABASE_URL, SUPABASE_SERVICE_KEY

_service_supabase: Optional[Client] = None

def is_configured() -> bool:
    return bool(SUPABASE_URL and SUPABASE_SERVICE_KEY)

def get_service_supabase() -> Client:
    """
    Client Supabase 'service-role' partagé (bypass RLS).
    Utilisé pour la table customers et le bucket de stockage, côté serveur uniquement.
    """
    global _service_supabase
    if not is_configured():
        raise RuntimeError("SUPABASE_URL/SUPABASE_SERVICE_KEY manquant pour get_service_supabase()")
    if _service_supabase is None:
        _service_supabase = create_client(SUPABASE_URL, SUPABASE_SERVICE_KEY)
    return _service_supabase
