"""
Stockage objet (Supabase Storage, bucket STORAGE_BUCKET).
- upload_file / upload_bytes: écriture d'un objet, renvoie son chemin dans le bucket
- delete_file / remove_files: suppression best-effort (bool, jamais d'exception)
- get_signed_url: URL temporaire pour un objet privé
- file_exists / list_folder: inspection d'un dossier
"""
from typing import Any, Dict, List, Optional
from pathlib import PurePosixPath
import logging
import uuid

import commerce.infra.supabase_client as supabase_client
from commerce import config
from commerce.errors import InternalError, NotFoundError

logger = logging.getLogger(__name__)

def _bucket():
    if not config.STORAGE_BUCKET:
        raise InternalError("Storage is not configured")
    return supabase_client.get_service_supabase().storage.from_(config.STORAGE_BUCKET)

def build_object_path(folder: str, filename: Optional[str]) -> str:
    """Chemin unique: <folder>/<uuid><extension d'origine>."""
    ext = PurePosixPath(filename or "").suffix.lower()
    return f"{folder.strip('/')}/{uuid.uuid4()}{ext}"

def upload_bytes(path: str, data: bytes, content_type: str, upsert: bool = False) -> str:
    try:
        _bucket().upload(
            path,
            data,
            file_options={"content-type": content_type, "upsert": "true" if upsert else "false"},
        )
    except InternalError:
        raise
    except Exception as e:
        logger.exception("storage upload failed path=%s", path)
        raise InternalError("Failed to upload file") from e
    return path

def upload_file(data: bytes, *, folder: str, filename: Optional[str], content_type: str) -> str:
    return upload_bytes(build_object_path(folder, filename), data, content_type)

def delete_file(path: str) -> bool:
    """Suppression best-effort: True si supprimé, False sinon (erreur journalisée)."""
    if not path:
        return False
    return remove_files([path])

def remove_files(paths: List[str]) -> bool:
    if not paths:
        return True
    try:
        _bucket().remove(paths)
        return True
    except Exception:
        logger.exception("storage delete failed paths=%s", paths)
        return False

def get_signed_url(path: str, expires_in: Optional[int] = None) -> str:
    """
    URL signée valable expires_in secondes (SIGNED_URL_TTL par défaut).
    Lève NotFoundError si l'objet est introuvable.
    """
    ttl = int(expires_in or config.SIGNED_URL_TTL)
    try:
        res: Dict[str, Any] = _bucket().create_signed_url(path, ttl) or {}
    except InternalError:
        raise
    except Exception as e:
        logger.warning("signed url failed path=%s error=%s", path, e)
        raise NotFoundError("File not found") from e
    # la clé varie selon la version du client
    url = res.get("signedURL") or res.get("signedUrl") or res.get("signed_url")
    if not url:
        raise NotFoundError("File not found")
    return url

def list_folder(folder: str) -> List[Dict[str, Any]]:
    try:
        return _bucket().list(folder.strip("/")) or []
    except InternalError:
        raise
    except Exception as e:
        logger.exception("storage list failed folder=%s", folder)
        raise InternalError("Failed to list files") from e

def file_exists(path: str) -> bool:
    p = PurePosixPath(path)
    return any(entry.get("name") == p.name for entry in list_folder(str(p.parent)))
