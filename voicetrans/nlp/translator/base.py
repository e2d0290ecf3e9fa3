from __future__ import annotations
from abc import ABC, abstractmethod
from voicetrans.contracts import TranslationRequest, TranslationResult


class TranslationError(RuntimeError):
    """Text translation call failed (missing language pair, engine or transport error)."""


class Translator(ABC):
    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def translate(self, req: TranslationRequest) -> TranslationResult: ...
