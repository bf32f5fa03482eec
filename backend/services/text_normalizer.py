"""Text normalization shared by keyword matching."""

import hashlib
import re
import unicodedata

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def strip_accents(text: str) -> str:
    """Remove combining diacritical marks (é -> e) without other changes."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def normalize(text: str) -> str:
    """Lower-case, strip accents and punctuation, collapse whitespace.

    >>> normalize("  Sécurité   privée (BSP)! ")
    'securite privee bsp'
    """
    if not text:
        return ""
    text = strip_accents(text.lower())
    text = _NON_WORD.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()


def text_hash(text: str) -> str:
    """sha256 hex digest of the exact text an extraction ran on."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
