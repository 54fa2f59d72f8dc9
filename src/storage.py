import logging
from urllib.parse import unquote

import httpx
from supabase import StorageException

from src.auth import get_client
from src.config import storage_bucket
from src.helpers import now_ms, safe_str

logger = logging.getLogger(__name__)


def foto_path(assistida_id: str, ms: int) -> str:
    return f"assistidas/{assistida_id}-{ms}.jpg"


def path_from_public_url(url: str, bucket: str) -> str | None:
    """
    https://<proj>.supabase.co/storage/v1/object/public/<bucket>/assistidas/x.jpg
    -> assistidas/x.jpg
    """
    url = safe_str(url)
    marker = f"/object/public/{bucket}/"
    if marker not in url:
        return None
    path = url.split(marker, 1)[1].split("?", 1)[0]
    return unquote(path) or None


def upload_foto_assistida(assistida_id: str, data: bytes, content_type: str = "image/jpeg") -> str:
    bucket = storage_bucket()
    path = foto_path(assistida_id, now_ms())

    store = get_client().storage.from_(bucket)
    store.upload(path, data, {"content-type": content_type or "image/jpeg", "upsert": "true"})

    logger.info("Foto enviada: %s/%s", bucket, path)
    return store.get_public_url(path)


def try_delete_by_url(url: str) -> bool:
    """Remove a foto antiga. Falha aqui não impede o salvamento: só registra aviso."""
    bucket = storage_bucket()
    path = path_from_public_url(url, bucket)
    if not path:
        return False
    try:
        get_client().storage.from_(bucket).remove([path])
    except (StorageException, httpx.HTTPError) as e:
        logger.warning("Não foi possível remover a foto antiga %s: %s", path, e)
        return False
    return True
