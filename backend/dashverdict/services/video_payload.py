from __future__ import annotations

import base64
import mimetypes
from functools import cached_property
from pathlib import Path

import cv2


VIDEO_SUFFIXES = {".mp4", ".mov", ".webm", ".mkv", ".avi", ".m4v"}
DEFAULT_MIME = "video/mp4"


class VideoPayload:
    """Video bytes for one run, encoded to a data URL at most once."""

    def __init__(self, data: bytes, mime_type: str = DEFAULT_MIME, name: str = "video") -> None:
        if not data:
            raise ValueError("Video payload is empty")
        self.data = data
        self.mime_type = mime_type
        self.name = name

    @classmethod
    def from_path(cls, path: Path) -> VideoPayload:
        mime, _ = mimetypes.guess_type(path.name)
        return cls(path.read_bytes(), mime_type=mime or DEFAULT_MIME, name=path.name)

    @cached_property
    def data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"

    def __repr__(self) -> str:
        return f"VideoPayload(name={self.name!r}, mime_type={self.mime_type!r}, size={len(self.data)})"


def is_video_filename(filename: str | None) -> bool:
    return bool(filename) and Path(filename).suffix.lower() in VIDEO_SUFFIXES


def probe_duration(path: Path) -> float:
    cap = cv2.VideoCapture(str(path))
    if not cap.isOpened():
        return 0.0
    fps = cap.get(cv2.CAP_PROP_FPS) or 25.0
    frames = cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0
    cap.release()
    return float(frames / max(fps, 1.0))
