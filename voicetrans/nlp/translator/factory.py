from __future__ import annotations
import os
from .base import Translator
from .argos import ArgosTranslator
from .stub import StubTranslator

def get_translator(provider: str | None = None, *, default_source: str = "en") -> Translator:
    provider = (provider or os.getenv("VOICETRANS_TRANSLATOR", "argos")).lower().strip()

    if provider == "stub":
        return StubTranslator()
    if provider == "argos":
        return ArgosTranslator(default_source=default_source)

    raise ValueError(f"Unknown translator provider: {provider}")
