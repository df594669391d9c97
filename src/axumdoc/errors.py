from __future__ import annotations

from pathlib import Path


class AxumDocError(Exception):
    """Base class for errors that abort a generation run."""


class BaseDirNotFoundError(AxumDocError):
    def __init__(self, base_dir: Path):
        super().__init__(f"Base directory does not exist: {base_dir}")
        self.base_dir = base_dir


class HandlerFileNotFoundError(AxumDocError):
    def __init__(self, path: Path):
        super().__init__(f"Handler file does not exist: {path}")
        self.path = path


class RustParseError(AxumDocError):
    def __init__(self, origin: str, line: int | None = None):
        where = f"{origin}:{line}" if line is not None else origin
        super().__init__(f"Failed to parse Rust source: {where}")
        self.origin = origin
        self.line = line


class OutputWriteError(AxumDocError):
    def __init__(self, path: Path, reason: str):
        super().__init__(f"Cannot write output file {path}: {reason}")
        self.path = path
