from typing import Optional
from supabase import create_client, Client
from funnel_bridge.config import SUPABASE_URL, SUPABASE_SERVICE_KEY
from funnel_bridge.exceptions import DependencyUnavailable

_service_supabase: Optional[Client] = None

def get_service_supabase() -> Client:
    """
    Client Supabase service-role (bypass RLS).
    Le bridge n'agit jamais au nom d'un utilisateur: toutes les écritures passent par ce client.
    """
    global _service_supabase
    if not SUPABASE_URL or not SUPABASE_SERVICE_KEY:
        raise DependencyUnavailable("SUPABASE_URL/SUPABASE_SERVICE_KEY manquant", service="supabase", not_configured=True)
    if _service_supabase is None:
        _service_supabase = create_client(SUPABASE_URL, SUPABASE_SERVICE_KEY)
    return _service_supabase
