from __future__ import annotations

from typing import Optional

# Language codes accepted by Whisper-family models as an explicit source hint.
SUPPORTED_LANGUAGES: frozenset[str] = frozenset(
    """
    af am ar as az ba be bg bn bo br bs ca cs cy da de el en es et eu fa fi fo fr
    gl gu ha haw he hi hr ht hu hy id is it ja jv ka kk km kn ko la lb ln lo lt lv
    mg mi mk ml mn mr ms mt my ne nl nn no oc pa pl ps pt ro ru sa sd si sk sl sn
    so sq sr su sv sw ta te tg th tk tl tr tt uk ur uz vi yi yo yue zh
    """.split()
)


def is_supported_language(code: str | None) -> bool:
    return bool(code) and str(code).strip().lower() in SUPPORTED_LANGUAGES


def normalize_language_hint(code: str | None) -> Optional[str]:
    """Return a usable source-language hint, or None to let the model auto-detect."""
    if code is None:
        return None
    cleaned = str(code).strip().lower()
    if not cleaned or cleaned == "auto":
        return None
    if cleaned not in SUPPORTED_LANGUAGES:
        return None
    return cleaned
