from __future__ import annotations

import threading

from .base import Translator, TranslationError
from voicetrans.contracts import TranslationRequest, TranslationResult


class ArgosTranslator(Translator):
    """
    Offline translation with argostranslate. Language pairs are installed on first
    use (auto_install) and remembered; the source language falls back to
    default_source when the request carries none or an unknown code.
    """

    def __init__(self, default_source: str = "en", auto_install: bool = True):
        self.default_source = default_source
        self.auto_install = auto_install
        self._ready: set[tuple[str, str]] = set()
        self._install_lock = threading.Lock()

    @property
    def name(self) -> str:
        return "argos"

    def _source_code(self, req: TranslationRequest) -> str:
        code = (req.source_lang or "").strip().lower()
        if not code or code in ("auto", "unknown", "manual"):
            return self.default_source
        return code

    def _ensure_ready(self, from_code: str, to_code: str) -> None:
        if (from_code, to_code) in self._ready:
            return

        import argostranslate.package
        import argostranslate.translate

        with self._install_lock:
            if (from_code, to_code) in self._ready:
                return

            installed = argostranslate.translate.get_installed_languages()
            have_from = any(l.code == from_code for l in installed)
            have_to = any(l.code == to_code for l in installed)

            if not (have_from and have_to):
                if not self.auto_install:
                    raise TranslationError(
                        f"Argos model {from_code}->{to_code} not installed and auto_install=False"
                    )

                argostranslate.package.update_package_index()
                available = argostranslate.package.get_available_packages()

                pkg = None
                for p in available:
                    if p.from_code == from_code and p.to_code == to_code:
                        pkg = p
                        break
                if pkg is None:
                    raise TranslationError(f"No Argos package found for {from_code}->{to_code}")

                path = pkg.download()
                argostranslate.package.install_from_path(path)

            self._ready.add((from_code, to_code))

    def translate(self, req: TranslationRequest) -> TranslationResult:
        from_code = self._source_code(req)
        to_code = req.target_lang.strip().lower()
        if from_code == to_code:
            return TranslationResult(source_text=req.text, translated_text=req.text, provider=self.name)

        try:
            self._ensure_ready(from_code, to_code)
            import argostranslate.translate

            out = argostranslate.translate.translate(req.text, from_code, to_code)
        except TranslationError:
            raise
        except Exception as e:
            raise TranslationError(f"argos {from_code}->{to_code} failed: {e}") from e
        return TranslationResult(source_text=req.text, translated_text=out, provider=self.name)
