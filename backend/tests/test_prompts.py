from __future__ import annotations

from pathlib import Path

import pytest

from dashverdict.core.config import PACKAGE_ROOT
from dashverdict.core.errors import ConfigurationError
from dashverdict.schemas.analysis import SECTION_NAMES, VERDICTS, VideoSection
from dashverdict.services.prompts import END_PLACEHOLDER, START_PLACEHOLDER, PromptBook


def test_bundled_prompt_file_covers_every_verdict_and_section() -> None:
    book = PromptBook.load(PACKAGE_ROOT / "prompts.yaml")

    for verdict in VERDICTS:
        assert book.perspective(verdict) == verdict
        for section in SECTION_NAMES:
            template = book.template(verdict, section)
            assert START_PLACEHOLDER in template
            assert END_PLACEHOLDER in template


def test_render_fills_section_bounds(prompts: PromptBook) -> None:
    section = VideoSection(name="event", start=0.0, end=9.75)

    rendered = prompts.render("offender", section)

    assert rendered == "[event] offender view from 0.0s to 9.8s"


def test_missing_verdict_uses_fallback(prompts: PromptBook) -> None:
    section = VideoSection(name="post", start=9.75, end=30.0)

    assert prompts.perspective("witness") == "victim"
    assert prompts.render("witness", section).startswith("[post] victim view")


def test_fallback_must_exist() -> None:
    with pytest.raises(ConfigurationError):
        PromptBook({"offender": {"ante": "a", "event": "b", "post": "c"}}, fallback_verdict="victim")


def test_missing_section_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError, match="post"):
        PromptBook({"victim": {"ante": "a", "event": "b"}})


def test_load_ignores_unknown_verdicts(tmp_path: Path) -> None:
    path = tmp_path / "prompts.yaml"
    path.write_text(
        "victim:\n"
        "  ante: 'before {{start}}-{{end}}'\n"
        "  event: 'during {{start}}-{{end}}'\n"
        "  post: 'after {{start}}-{{end}}'\n"
        "bystander:\n"
        "  ante: 'ignored'\n",
        encoding="utf-8",
    )

    book = PromptBook.load(path)

    assert book.perspective("bystander") == "victim"
    assert book.render("victim", VideoSection(name="ante", start=0.0, end=2.25)) == "before 0.0-2.2"


def test_load_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        PromptBook.load(tmp_path / "nope.yaml")


def test_load_rejects_non_mapping(tmp_path: Path) -> None:
    path = tmp_path / "prompts.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        PromptBook.load(path)
