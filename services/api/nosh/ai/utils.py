import base64
import binascii
import re
from typing import Optional
from urllib.parse import unquote_to_bytes


def normalize_model_id(model_string: str) -> str:
    """
    Sanitizes a model string to be SDK-compatible.

    Examples:
    - 'model="gemini-2.5-flash"' -> 'gemini-2.5-flash'
    - 'google/gemini-2.5-flash' -> 'gemini-2.5-flash'

    """
    if not model_string:
        return model_string

    s = model_string.strip()

    # Strip optional 'model=' prefix (case insensitive)
    if s.lower().startswith("model="):
        s = s[6:]

    s = s.strip('"\'')

    # Provider prefix from router-style ids
    if s.startswith("google/"):
        s = s[len("google/"):]

    return s.strip()


_DATA_URL = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<b64>;base64)?,(?P<payload>.*)$", re.S)


def parse_data_url(url: str) -> Optional[tuple[str, bytes]]:
    """Decode a ``data:`` URL into (mime_type, bytes). None if it is not one."""
    if not url:
        return None
    m = _DATA_URL.match(url.strip())
    if not m:
        return None

    mime = m.group("mime") or "application/octet-stream"
    payload = m.group("payload")
    try:
        data = base64.b64decode(payload, validate=True) if m.group("b64") else unquote_to_bytes(payload)
    except (binascii.Error, ValueError):
        return None
    return mime, data
