from __future__ import annotations

import logging
import sys
from typing import List, Optional, Protocol, TextIO

MASK = "***"


class SecretSink(Protocol):
    def mask(self, value: str) -> None: ...


class SecretMasker(logging.Filter):
    """Logging filter that replaces registered secrets in formatted messages."""

    def __init__(self) -> None:
        super().__init__()
        self._secrets: List[str] = []

    def mask(self, value: str) -> None:
        if value and value not in self._secrets:
            self._secrets.append(value)
            # longest first so a secret containing another is fully replaced
            self._secrets.sort(key=len, reverse=True)

    def redact(self, text: str) -> str:
        for secret in self._secrets:
            text = text.replace(secret, MASK)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if self._secrets:
            record.msg = self.redact(record.getMessage())
            record.args = None
        return True


class ActionsMasker:
    """Registers secrets with the GitHub Actions runner via ::add-mask::."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self.stream = stream or sys.stdout

    def mask(self, value: str) -> None:
        if value:
            self.stream.write(f"::add-mask::{value}\n")
            self.stream.flush()


def mask_all(sinks, *values: str) -> None:
    for sink in sinks:
        for value in values:
            sink.mask(value)
