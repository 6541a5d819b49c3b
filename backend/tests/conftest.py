from __future__ import annotations

import os
import tempfile
from pathlib import Path

_TMP_ROOT = Path(tempfile.mkdtemp(prefix="dashverdict-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_ROOT / 'test.db'}"
os.environ["UPLOAD_DIR"] = str(_TMP_ROOT / "uploads")
os.environ["REPORT_DIR"] = str(_TMP_ROOT / "reports")
os.environ["ORACLE_API_KEY"] = "test-key"

import pytest  # noqa: E402

from dashverdict.services.prompts import PromptBook  # noqa: E402
from dashverdict.services.video_payload import VideoPayload  # noqa: E402
from helpers import TEST_TEMPLATES  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def prompts() -> PromptBook:
    return PromptBook(TEST_TEMPLATES, fallback_verdict="victim")


@pytest.fixture
def video() -> VideoPayload:
    return VideoPayload(b"\x00\x00\x00\x18ftypmp42fake-video", mime_type="video/mp4", name="clip.mp4")
