# Works out which storage area and object path an attachment row points at
import re
from typing import Any, Dict, Iterable, Optional, Tuple

_AREA_KEYS = ("storage_area", "bucket", "storage_bucket", "bucket_name")
_PATH_KEYS = ("path", "storage_key", "file_path")
_FULL_PATH_KEYS = ("storage_path", "url")

# Scheme and host, plus the object-URL prefix used by Supabase-style public links
_URL_PREFIX = re.compile(r"^https?://[^/]+/(?:storage/v1/object/public/)?")


def _first(row: Dict[str, Any], keys: Iterable[str]) -> Optional[str]:
    for key in keys:
        value = row.get(key)
        if value:
            return str(value)
    return None


def strip_public_prefix(full_path: str, public_base_url: Optional[str] = None) -> str:
    if public_base_url and full_path.startswith(public_base_url.rstrip("/") + "/"):
        stripped = full_path[len(public_base_url.rstrip("/")) + 1:]
    else:
        stripped = _URL_PREFIX.sub("", full_path)
    return stripped.split("?", 1)[0].lstrip("/")


def resolve_storage_location(
    row: Dict[str, Any],
    known_areas: Iterable[str],
    default_area: str,
    public_base_url: Optional[str] = None,
) -> Optional[Tuple[str, str]]:
    """
    (area, path) of the object an attachment row refers to, or None when nothing usable is stored.

    Explicit area and path columns win. Otherwise a full `storage_path`/`url` is used: with the
    public URL prefix removed, a first segment naming a known area is taken as the area; if it
    does not, the whole remainder is the path inside the explicit or default area.
    """
    explicit_area = _first(row, _AREA_KEYS)
    explicit_path = _first(row, _PATH_KEYS)
    if explicit_area and explicit_path:
        return explicit_area, explicit_path.lstrip("/")

    # Rows written by this service carry a relative storage_path next to storage_area
    if row.get("storage_area") and row.get("storage_path") and not str(row["storage_path"]).startswith(("http://", "https://")):
        relative = str(row["storage_path"]).lstrip("/")
        if relative:
            return str(row["storage_area"]), relative

    full_path = _first(row, _FULL_PATH_KEYS)
    if not full_path:
        return None

    remainder = strip_public_prefix(full_path, public_base_url)
    if not remainder:
        return None
    first_segment, _, rest = remainder.partition("/")
    if rest and first_segment in set(known_areas):
        return first_segment, rest
    return explicit_area or default_area, remainder
