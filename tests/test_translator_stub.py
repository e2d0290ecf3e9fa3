from __future__ import annotations

import sys
import types

import pytest

from voicetrans.contracts import TranslationRequest
from voicetrans.nlp.translator.argos import ArgosTranslator
from voicetrans.nlp.translator.base import TranslationError
from voicetrans.nlp.translator.factory import get_translator
from voicetrans.nlp.translator.stub import StubTranslator


def test_stub_translator_deterministic() -> None:
    tr = StubTranslator()
    out = tr.translate(TranslationRequest(text="Hello world.", target_lang="ja"))
    assert out.provider == "stub"
    assert out.translated_text == "[ja] Hello world."
    assert out.source_text == "Hello world."


def test_factory_providers(monkeypatch) -> None:
    assert isinstance(get_translator("stub"), StubTranslator)
    assert isinstance(get_translator(" ARGOS "), ArgosTranslator)
    monkeypatch.setenv("VOICETRANS_TRANSLATOR", "stub")
    assert isinstance(get_translator(), StubTranslator)
    with pytest.raises(ValueError, match="Unknown translator provider"):
        get_translator("babelfish")


def _install_fake_argos(monkeypatch, installed_codes: list[str], available: list[tuple[str, str]]):
    calls: dict[str, list] = {"installed": [], "translate": [], "downloads": []}

    pkg_mod = types.ModuleType("argostranslate.package")
    tr_mod = types.ModuleType("argostranslate.translate")
    root = types.ModuleType("argostranslate")
    root.package = pkg_mod
    root.translate = tr_mod

    class _Pkg:
        def __init__(self, from_code: str, to_code: str) -> None:
            self.from_code = from_code
            self.to_code = to_code

        def download(self) -> str:
            calls["downloads"].append((self.from_code, self.to_code))
            return f"/tmp/{self.from_code}_{self.to_code}.argosmodel"

    pkg_mod.update_package_index = lambda: None
    pkg_mod.get_available_packages = lambda: [_Pkg(f, t) for f, t in available]
    pkg_mod.install_from_path = lambda path: calls["installed"].append(path)
    tr_mod.get_installed_languages = lambda: [types.SimpleNamespace(code=c) for c in installed_codes]

    def _translate(text: str, from_code: str, to_code: str) -> str:
        calls["translate"].append((from_code, to_code))
        return f"{to_code}:{text}"

    tr_mod.translate = _translate

    monkeypatch.setitem(sys.modules, "argostranslate", root)
    monkeypatch.setitem(sys.modules, "argostranslate.package", pkg_mod)
    monkeypatch.setitem(sys.modules, "argostranslate.translate", tr_mod)
    return calls


def test_argos_installs_missing_pair_once(monkeypatch) -> None:
    calls = _install_fake_argos(monkeypatch, installed_codes=["en"], available=[("en", "zh")])
    tr = ArgosTranslator()
    first = tr.translate(TranslationRequest(text="hi", source_lang="auto", target_lang="zh"))
    second = tr.translate(TranslationRequest(text="bye", source_lang=None, target_lang="ZH"))
    assert first.translated_text == "zh:hi"
    assert second.translated_text == "zh:bye"
    assert calls["downloads"] == [("en", "zh")]
    assert calls["translate"] == [("en", "zh"), ("en", "zh")]


def test_argos_same_language_is_passthrough() -> None:
    out = ArgosTranslator().translate(TranslationRequest(text="hola", source_lang="es", target_lang="es"))
    assert out.translated_text == "hola"
    assert out.provider == "argos"


def test_argos_missing_package_raises(monkeypatch) -> None:
    _install_fake_argos(monkeypatch, installed_codes=["en"], available=[])
    with pytest.raises(TranslationError, match="No Argos package"):
        ArgosTranslator().translate(TranslationRequest(text="hi", source_lang="en", target_lang="xx"))


def test_argos_without_auto_install_raises(monkeypatch) -> None:
    _install_fake_argos(monkeypatch, installed_codes=["en"], available=[("en", "ja")])
    with pytest.raises(TranslationError, match="not installed"):
        ArgosTranslator(auto_install=False).translate(
            TranslationRequest(text="hi", source_lang="en", target_lang="ja")
        )
