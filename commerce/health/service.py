from urllib.parse import urlparse
from datetime import datetime, timezone
import socket
import time
from typing import Any, Dict, Optional

import commerce.infra.supabase_client as supabase_client
from commerce import config

def health_status(started_at: Optional[float]) -> Dict[str, Any]:
    """Santé de base: statut, horodatage ISO, uptime (secondes) et environnement."""
    uptime = time.monotonic() - started_at if started_at else 0.0
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(uptime, 3),
        "environment": config.ENVIRONMENT,
    }

def _check_table(client, name: str):
    try:
        res = client.table(name).select("id").limit(1).execute()
        cnt = len(res.data or [])
        return {"ok": True, "rows": cnt}
    except Exception as e:
        return {"ok": False, "error": str(e)}

def health_supabase_info() -> Dict[str, Any]:
    effective_url = config.SUPABASE_URL
    parsed = urlparse(effective_url) if effective_url else None
    hostname = parsed.hostname if parsed else None
    dns_ok = None
    dns_error = None
    if hostname:
        try:
            socket.getaddrinfo(hostname, 443)
            dns_ok = True
        except OSError as e:
            dns_ok = False
            dns_error = str(e)

    info: Dict[str, Any] = {
        "supabase_url": effective_url,
        "hostname": hostname,
        "dns_ok": dns_ok,
        "dns_error": dns_error,
        "connect_ok": False,
        "error": None,
        "tables": {},
    }
    try:
        client = supabase_client.get_service_supabase()
        info["tables"][config.CUSTOMERS_TABLE] = _check_table(client, config.CUSTOMERS_TABLE)
        info["connect_ok"] = True
    except Exception as e:
        info["error"] = str(e)
    return info
