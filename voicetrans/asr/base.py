from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from voicetrans.contracts import AudioPayload, TranscriptionResult


class TranscriptionError(RuntimeError):
    """Speech-to-text call failed (transport, auth, model or audio format problem)."""


class Transcriber(ABC):
    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def transcribe(
        self,
        payload: AudioPayload,
        language_hint: Optional[str] = None,
    ) -> TranscriptionResult: ...
