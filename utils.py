import logging
import os
import re
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)


def safe_stem(name: str, fallback: str = "member") -> str:
    """
    Convert a display name into a filesystem-safe stem.
    - Uses only letters/numbers/spaces/_/-
    - Collapses whitespace to underscores
    - Falls back to `fallback` when nothing is left
    """
    raw = "" if name is None else str(name)
    safe = re.sub(r"[^A-Za-z0-9 _-]+", "", raw).strip()
    safe = re.sub(r"\s+", "_", safe)
    return safe or fallback


def safe_filename(name: str, ext: str = "jpg", fallback: str = "member") -> str:
    """'<safe stem>.<ext>', e.g. 'John Doe' -> 'John_Doe.jpg'"""
    return f"{safe_stem(name, fallback)}.{ext.lstrip('.')}"


def timestamped_filename(prefix: str, side: str, ext: str = "jpg", when: Optional[datetime] = None) -> str:
    """'<prefix>_<side>_<YYYYmmddHHMMSS>.<ext>', e.g. ID_Card_Front_20261017093000.jpg"""
    when = when or datetime.now()
    stem = safe_stem(f"{prefix} {side}", fallback="card")
    return f"{stem}_{when.strftime('%Y%m%d%H%M%S')}.{ext.lstrip('.')}"


def remove_temp_file(path: Optional[str]) -> None:
    if path and os.path.exists(path):
        try:
            os.remove(path)
        except OSError as e:
            logger.warning("Could not remove temp file %s: %s", path, e)


def store_upload(paths: Dict[str, str], keys: Dict[str, tuple], kind: str, uploaded) -> Optional[str]:
    """
    Keep one temp file per uploaded asset kind and return its path.

    `uploaded` is a Streamlit UploadedFile (file_id, name, size, getvalue()).
    The page reruns on every interaction, so an unchanged upload reuses its
    file; a replaced or cleared upload removes the old one.
    """
    if uploaded is None:
        remove_temp_file(paths.pop(kind, None))
        keys.pop(kind, None)
        return None
    key = (uploaded.file_id, uploaded.name, uploaded.size)
    current = paths.get(kind)
    if keys.get(kind) == key and current and os.path.exists(current):
        return current
    remove_temp_file(paths.pop(kind, None))
    suffix = Path(uploaded.name).suffix or ".png"
    with tempfile.NamedTemporaryFile(prefix=f"{kind}_", delete=False, suffix=suffix) as tmp:
        tmp.write(uploaded.getvalue())
    paths[kind] = tmp.name
    keys[kind] = key
    return tmp.name
