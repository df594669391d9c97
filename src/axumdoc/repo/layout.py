from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Optional, Sequence

# Where a nested/merged module's router lives, tried in order; first existing wins.
MODULE_FILE_PATTERNS: tuple[str, ...] = (
    "src/{module_path}/handlers.rs",
    "src/{module_path}/mod.rs",
    "src/{module_path}.rs",
)

# Where a module's handler functions live when they are not in the router file.
HANDLER_FILE_PATTERNS: tuple[str, ...] = (
    "src/{module_path}_handler.rs",
    "src/{module_path}/handlers.rs",
    "src/{module_path}/handler.rs",
    "src/{module_path}.rs",
)

# Files that define a module without naming it
MODULE_ROOT_FILES = {"mod.rs", "main.rs", "lib.rs"}


def module_from_path(base_dir: Path, file_path: Path) -> tuple[str, ...]:
    """
    Module qualifier of a file inside the crate:
      src/main.rs              -> ()
      src/modules/mod.rs       -> ("modules",)
      src/modules/user/api.rs  -> ("modules", "user", "api")
    """
    try:
        rel = Path(os.path.relpath(str(file_path), str(base_dir)))
    except ValueError:
        rel = file_path
    parts = list(rel.parts)
    if parts and parts[0] == "src":
        parts = parts[1:]

    out: list[str] = []
    for part in parts:
        if part in (".", "..") or part in MODULE_ROOT_FILES:
            continue
        name = part[:-3] if part.endswith(".rs") else part
        if name:
            out.append(name)
    return tuple(out)


def candidate_paths(base_dir: Path, qualifier: Sequence[str], patterns: Iterable[str]) -> list[Path]:
    module_path = "/".join(qualifier)
    return [base_dir / p.format(module_path=module_path) for p in patterns]


def first_existing(paths: Iterable[Path]) -> Optional[Path]:
    for p in paths:
        if p.is_file():
            return p
    return None
