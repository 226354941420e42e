import re
import unicodedata
from typing import Optional

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_SPACES = re.compile(r"\s+")


def normalize_for_match(text: Optional[str]) -> str:
    """
    Lowercase, strip diacritics and punctuation, collapse whitespace.

    "Rozpočet, teď NE!" -> "rozpocet ted ne"
    """
    s = (text or "").lower()
    s = "".join(ch for ch in unicodedata.normalize("NFD", s) if not unicodedata.combining(ch))
    s = _NON_ALNUM.sub(" ", s)
    return _SPACES.sub(" ", s).strip()
