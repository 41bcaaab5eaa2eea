# module checkout_backend.utils.validators
import math
import re
from typing import Any

EMAIL_RE = re.compile(r"^[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+@[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)+$")
US_ZIP_RE = re.compile(r"^\d{5}(-\d{4})?$")
STATE_CODE_RE = re.compile(r"^[A-Z]{2}$")
REP_CODE_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

_SCRIPT_BLOCK_RE = re.compile(r"<\s*script\b[^>]*>.*?<\s*/\s*script\s*>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]*>")
_DANGEROUS_URI_RE = re.compile(r"(javascript|vbscript)\s*:|data\s*:\s*text/html", re.IGNORECASE)
_EVENT_HANDLER_RE = re.compile(r"\bon[a-z]+\s*=", re.IGNORECASE)


def sanitize_text(value: str) -> str:
    """
    Retire le balisage exécutable d'une chaîne:
    - blocs <script>...</script> entiers, puis toute balise restante
    - URIs javascript:/vbscript:/data:text/html et attributs on*=
    """
    cleaned = _SCRIPT_BLOCK_RE.sub("", value)
    cleaned = _TAG_RE.sub("", cleaned)
    previous = None
    while previous != cleaned:
        previous = cleaned
        cleaned = _DANGEROUS_URI_RE.sub("", cleaned)
        cleaned = _EVENT_HANDLER_RE.sub("", cleaned)
    return cleaned.strip()


def is_valid_email(value: Any) -> bool:
    if not isinstance(value, str) or len(value) > 254:
        return False
    return bool(EMAIL_RE.match(value.strip()))


def is_valid_us_zip(value: Any) -> bool:
    return isinstance(value, str) and bool(US_ZIP_RE.match(value.strip()))


def normalize_state_code(value: Any) -> str:
    """Renvoie le code état en majuscules, ou "" si absent. Ne valide pas le format."""
    if value is None:
        return ""
    return str(value).strip().upper()


def is_valid_state_code(value: str) -> bool:
    return bool(STATE_CODE_RE.match(value or ""))


def is_valid_rep_code(value: Any) -> bool:
    return isinstance(value, str) and bool(REP_CODE_RE.match(value))


def is_number(value: Any) -> bool:
    """int/float finis uniquement (bool exclu)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)
