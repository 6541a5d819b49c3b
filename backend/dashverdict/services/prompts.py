from __future__ import annotations

from pathlib import Path

import yaml

from dashverdict.core.errors import ConfigurationError
from dashverdict.schemas.analysis import SECTION_NAMES, VERDICTS, VideoSection


START_PLACEHOLDER = "{{start}}"
END_PLACEHOLDER = "{{end}}"

SAMPLING_PROMPT = """Watch the entire video. Identify the first physical contact (collision) using this definition: first frame where bodies touch. Treat sudden, heavy camera movement as a very clear indication of collision.

Classify the role of the vehicle carrying the camera (the POV vehicle):
- "victim": the POV vehicle was hit, or followed all rules while another vehicle caused the crash.
- "offender": the POV vehicle caused the crash or broke rules leading to it.
- "witness": the POV vehicle was not involved in the crash but recorded it.

Return ONLY JSON with:
- approx_t_s (seconds from start, to the nearest 0.1s)
- window_s as [start, end] (a 2-4 second window that definitely contains first contact)
- fault ("victim", "offender", or "witness")

Example response: {"approx_t_s": 5.2, "window_s": [4.0, 7.0], "fault": "victim"}"""


class PromptBook:
    """Describe-prompt templates keyed by verdict, then by section name.

    A verdict with no entry uses ``fallback_verdict``'s templates. A section
    missing under a present verdict is a configuration error.
    """

    def __init__(self, templates: dict[str, dict[str, str]], fallback_verdict: str = "victim") -> None:
        if fallback_verdict not in templates:
            raise ConfigurationError(f"Fallback verdict '{fallback_verdict}' has no prompt templates")
        for verdict, sections in templates.items():
            missing = [name for name in SECTION_NAMES if name not in sections]
            if missing:
                raise ConfigurationError(f"Prompts for '{verdict}' are missing sections: {', '.join(missing)}")
        self._templates = templates
        self.fallback_verdict = fallback_verdict

    @classmethod
    def load(cls, path: Path, fallback_verdict: str = "victim") -> PromptBook:
        if not path.exists():
            raise ConfigurationError(f"Prompt file not found: {path}")
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Prompt file {path} must hold a mapping")
        templates: dict[str, dict[str, str]] = {}
        for verdict, sections in data.items():
            if verdict not in VERDICTS:
                continue
            if not isinstance(sections, dict):
                raise ConfigurationError(f"Prompts for '{verdict}' must be a mapping")
            templates[verdict] = {str(k): str(v) for k, v in sections.items()}
        return cls(templates, fallback_verdict=fallback_verdict)

    def perspective(self, verdict: str) -> str:
        return verdict if verdict in self._templates else self.fallback_verdict

    def template(self, verdict: str, section: str) -> str:
        return self._templates[self.perspective(verdict)][section]

    def render(self, verdict: str, section: VideoSection) -> str:
        return (
            self.template(verdict, section.name)
            .replace(START_PLACEHOLDER, f"{section.start:.1f}")
            .replace(END_PLACEHOLDER, f"{section.end:.1f}")
        )
