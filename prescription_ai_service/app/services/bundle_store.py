import threading
import time
import uuid
from typing import Callable, Dict, Optional, Tuple

from app.core.app_config import BUNDLE_TTL_S
from app.schemas.models import FullData

# analysis_id -> (expires_at, data)
_BUNDLES: Dict[str, Tuple[float, FullData]] = {}
_LOCK = threading.Lock()

_clock: Callable[[], float] = time.monotonic

def _new_analysis_id() -> str:
    return "ana_" + uuid.uuid4().hex[:16]

def purge_expired(now: Optional[float] = None) -> int:
    now = _clock() if now is None else now
    with _LOCK:
        expired = [k for k, (exp, _) in _BUNDLES.items() if exp <= now]
        for k in expired:
            del _BUNDLES[k]
    return len(expired)

def put_bundle(data: FullData, ttl_s: Optional[float] = None) -> str:
    """Store a fresh analysis and return its new id. Entries are never updated in place."""
    purge_expired()
    ttl = BUNDLE_TTL_S if ttl_s is None else ttl_s
    analysis_id = _new_analysis_id()
    with _LOCK:
        _BUNDLES[analysis_id] = (_clock() + ttl, data)
    return analysis_id

def get_bundle(analysis_id: str) -> Optional[FullData]:
    purge_expired()
    with _LOCK:
        entry = _BUNDLES.get(analysis_id)
    return entry[1] if entry else None

def clear_bundles() -> None:
    with _LOCK:
        _BUNDLES.clear()
