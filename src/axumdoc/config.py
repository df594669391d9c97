from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

DEFAULT_HANDLER_FILE = "src/main.rs"
DEFAULT_MODEL_FILES = "src/form.rs,src/response.rs,src/types.rs"
DEFAULT_OUTPUT = "openapi.json"

DEFAULT_TITLE = "Generated API"
DEFAULT_API_VERSION = "1.0.0"
DEFAULT_DESCRIPTION = "Auto-generated OpenAPI specification from Axum routes"


def split_model_files(value: str) -> list[str]:
    return [p.strip() for p in value.split(",") if p.strip()]


class GeneratorConfig(BaseModel):
    """Inputs of one generation run. Relative paths resolve against base_dir."""

    base_dir: Path = Path(".")
    handler_file: str = DEFAULT_HANDLER_FILE
    model_files: list[str] = Field(default_factory=lambda: split_model_files(DEFAULT_MODEL_FILES))
    output: str = DEFAULT_OUTPUT

    title: str = DEFAULT_TITLE
    api_version: str = DEFAULT_API_VERSION

    @field_validator("model_files", mode="before")
    @classmethod
    def _split_comma_list(cls, value: Any) -> Any:
        if isinstance(value, str):
            return split_model_files(value)
        if isinstance(value, (list, tuple)):
            return [str(v).strip() for v in value if str(v).strip()]
        return value

    @property
    def handler_path(self) -> Path:
        return self.base_dir / self.handler_file

    @property
    def model_paths(self) -> list[Path]:
        return [self.base_dir / m for m in self.model_files]

    @property
    def output_path(self) -> Path:
        return self.base_dir / self.output
