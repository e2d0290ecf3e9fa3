from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from voicetrans.asr.base import Transcriber
from voicetrans.asr.faster_whisper_pcm16 import FasterWhisperTranscriber
from voicetrans.asr.languages import normalize_language_hint
from voicetrans.audio.mic import SoundDeviceMicSource
from voicetrans.audio.segmenter import SegmenterConfig
from voicetrans.nlp.translator.base import Translator
from voicetrans.nlp.translator.factory import get_translator


@dataclass(frozen=True)
class LiveServices:
    mic: SoundDeviceMicSource
    transcriber: Transcriber
    translator: Translator
    segmenter_config: SegmenterConfig


def segmenter_config_from_args(args: Any) -> SegmenterConfig:
    return SegmenterConfig(
        silence_threshold=float(args.silence_threshold),
        pause_detection_ms=float(args.pause_detection_ms),
        min_segment_ms=float(args.min_segment_ms),
        max_segment_ms=float(args.max_segment_ms),
        consecutive_silence_frames=int(args.consecutive_silence_frames),
    )


def build_live_services(args: Any, logger: Any = None) -> LiveServices:
    mic = SoundDeviceMicSource(
        chunk_seconds=float(args.chunk_sec),
        sample_rate=int(args.sr),
        channels=int(args.channels),
        device=args.device,
        logger=logger,
    )
    transcriber = FasterWhisperTranscriber(
        model_size=str(args.model),
        language=normalize_language_hint(args.source_language),
    )
    translator = get_translator(str(args.translator))
    return LiveServices(
        mic=mic,
        transcriber=transcriber,
        translator=translator,
        segmenter_config=segmenter_config_from_args(args),
    )
