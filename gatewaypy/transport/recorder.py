# recorder.py
"""
Optional capture of the request/response traffic of a connection.

Recordings are plain ``|``-separated text, one message per file, numbered in
the order they were seen. They are handy for building test fixtures from a
live gateway session.
"""

from __future__ import annotations

import logging
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Protocol, Union

from ..protocol.wire import RequestMessage, ResponseMessage

logger = logging.getLogger(__name__)

RECORDING_DIR_ENV = "GATEWAYPY_RECORDING_DIR"


class MessageRecorder(Protocol):
    def record_request(self, message: RequestMessage) -> None: ...

    def record_response(self, message: ResponseMessage) -> None: ...


class NullRecorder:
    """Default recorder: records nothing."""

    def record_request(self, message: RequestMessage) -> None:
        pass

    def record_response(self, message: ResponseMessage) -> None:
        pass


class FileRecorder:
    """Write each message to ``<directory>/<timestamp>/NNNN-<kind>.msg``."""

    def __init__(self, directory: Union[str, Path]) -> None:
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        self.path = Path(directory) / stamp
        self.path.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._sequence = 0

    @classmethod
    def from_env(cls, var: str = RECORDING_DIR_ENV) -> Union["FileRecorder", NullRecorder]:
        directory = os.environ.get(var, "").strip()
        if not directory:
            return NullRecorder()
        return cls(directory)

    def _write(self, kind: str, text: str) -> Path:
        with self._lock:
            self._sequence += 1
            sequence = self._sequence
        target = self.path / f"{sequence:04d}-{kind}.msg"
        target.write_text(text, encoding="utf-8")
        logger.debug("recorded %s to %s", kind, target)
        return target

    def record_request(self, message: RequestMessage) -> None:
        self._write("request", message.encode_simple())

    def record_response(self, message: ResponseMessage) -> None:
        self._write("response", message.encode_simple())
