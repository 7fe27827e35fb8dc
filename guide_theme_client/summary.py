import json
import sys
from pathlib import Path
from typing import Any, Optional, TextIO

from loguru import logger


def pretty_json(payload: Any) -> str:
    return json.dumps(payload, indent=2, default=str)


class StepSummary:
    """Append-only Markdown report written to the CI step summary file.

    Every JSON record is also echoed to stdout inside a collapsible CI log group.
    With no path configured the records only go to the log.
    """

    def __init__(self, path: Optional[Path] = None, stream: Optional[TextIO] = None):
        self.path = Path(path) if path is not None else None
        self.stream = stream or sys.stdout
        self.logger = logger

    def _append(self, text: str) -> None:
        if self.path is None:
            self.logger.debug("No step summary configured, skipping summary record")
            return
        with self.path.open("a", encoding="utf-8") as f:
            f.write(text)

    def _group(self, title: str, body: str) -> None:
        self.stream.write(f"::group::{title}\n{body}\n::endgroup::\n")
        self.stream.flush()

    def record_json(self, title: str, payload: Any) -> None:
        body = pretty_json(payload)
        self._group(title, body)
        self._append(f"\n\n## {title}\n```json\n{body}\n```")

    def record_text(self, title: str, text: str) -> None:
        self._append(f"\n\n## {title}\n{text}")
