from __future__ import annotations

import os
import tempfile
from typing import Optional

from voicetrans.asr.base import Transcriber, TranscriptionError
from voicetrans.audio.wav import write_pcm16_wav
from voicetrans.contracts import AudioPayload, TranscriptionResult


class FasterWhisperTranscriber(Transcriber):
    """
    Segment transcriber on top of faster-whisper.

    In-memory payloads are written to a temporary WAV (removed afterwards); file
    payloads are handed to the model as-is. The model loads lazily on first use.
    """

    def __init__(
        self,
        *,
        model_size: str = "tiny",
        device: str = "cpu",
        compute_type: str = "int8",
        language: Optional[str] = None,
        beam_size: int = 1,
    ) -> None:
        self.model_size = model_size
        self.device = device
        self.compute_type = compute_type
        self.language = language  # fallback hint when a segment carries none
        self.beam_size = beam_size
        self._model = None

    @property
    def name(self) -> str:
        return "faster-whisper"

    def _get_model(self):
        if self._model is None:
            from faster_whisper import WhisperModel

            self._model = WhisperModel(
                self.model_size,
                device=self.device,
                compute_type=self.compute_type,
            )
        return self._model

    def _run(self, path: str, language: Optional[str]) -> TranscriptionResult:
        model = self._get_model()
        segments, info = model.transcribe(
            path,
            language=language,
            beam_size=self.beam_size,
            vad_filter=False,
            condition_on_previous_text=False,
        )
        parts = [(s.text or "").strip() for s in segments]
        text = " ".join(p for p in parts if p).strip()
        detected = getattr(info, "language", None) or language
        return TranscriptionResult(text=text, language=detected)

    def transcribe(
        self,
        payload: AudioPayload,
        language_hint: Optional[str] = None,
    ) -> TranscriptionResult:
        language = language_hint or self.language
        try:
            if payload.path is not None:
                return self._run(payload.path, language)

            if not payload.pcm16:
                return TranscriptionResult(text="", language=language)

            fd, tmp_path = tempfile.mkstemp(suffix=".wav", prefix="voicetrans_seg_")
            os.close(fd)
            try:
                write_pcm16_wav(
                    tmp_path,
                    payload.pcm16,
                    sample_rate=payload.sample_rate,
                    channels=payload.channels,
                )
                return self._run(tmp_path, language)
            finally:
                try:
                    os.remove(tmp_path)
                except OSError:
                    pass
        except TranscriptionError:
            raise
        except Exception as e:
            raise TranscriptionError(f"{self.name} failed: {e}") from e
