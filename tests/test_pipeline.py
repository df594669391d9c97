from pathlib import Path
import json
import logging
import shutil
import textwrap

import pytest

from axumdoc.config import GeneratorConfig
from axumdoc.errors import BaseDirNotFoundError, HandlerFileNotFoundError, OutputWriteError, RustParseError
from axumdoc.orchestrator.pipeline import resolve_routes, run_generate

FIXTURES = Path(__file__).parent / "fixtures"


def write(p: Path, s: str) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(textwrap.dedent(s), encoding="utf-8")


def fixture_copy(tmp_path: Path, name: str) -> Path:
    dst = tmp_path / name
    shutil.copytree(FIXTURES / name, dst)
    return dst


def test_generate_simple_app(tmp_path: Path):
    base = fixture_copy(tmp_path, "simple_app")
    result = run_generate(GeneratorConfig(base_dir=base))

    assert [(r.method, r.path) for r in result.routes] == [
        ("GET", "/"),
        ("POST", "/login"),
        ("GET", "/user/:id"),
    ]
    assert set(result.models) == {"LoginForm", "LoginResponse", "User"}

    out = base / "openapi.json"
    assert result.output_path == out
    doc = json.loads(out.read_text(encoding="utf-8"))
    assert doc == result.document

    login = doc["paths"]["/login"]["post"]
    assert login["summary"] == "User login endpoint"
    assert login["description"].startswith("This endpoint handles user authentication")
    assert login["requestBody"]["content"]["application/json"]["schema"] == {
        "$ref": "#/components/schemas/LoginForm"
    }
    assert login["responses"]["200"]["content"]["application/json"]["schema"] == {
        "$ref": "#/components/schemas/LoginResponse"
    }

    get_user = doc["paths"]["/user/:id"]["get"]
    assert [p["name"] for p in get_user["parameters"]] == ["id"]

    root = doc["paths"]["/"]["get"]
    assert root["summary"] == "Root health check"
    assert "description" not in root

    user = doc["components"]["schemas"]["User"]["properties"]
    assert user["id"]["format"] == "uuid"
    assert user["created_at"]["format"] == "date-time"


def test_generate_modular_app_finds_handlers_in_module_files(tmp_path: Path):
    base = fixture_copy(tmp_path, "modular_app")
    config = GeneratorConfig(
        base_dir=base,
        model_files="src/modules/auth_handler.rs, src/modules/user_handler.rs",
    )
    result = run_generate(config)

    assert [(r.method, r.path, r.handler_name) for r in result.routes] == [
        ("GET", "/", "root"),
        ("POST", "/login", "login"),
        ("GET", "/api/v1/user/info", "get_user_info"),
    ]
    assert set(result.handlers) == {"root", "login", "get_user_info"}

    paths = result.document["paths"]
    login = paths["/login"]["post"]
    assert login["tags"] == ["modules::auth"]
    assert login["summary"] == "User login endpoint"
    assert login["requestBody"]["content"]["application/json"]["schema"] == {
        "$ref": "#/components/schemas/LoginCredentials"
    }
    info = paths["/api/v1/user/info"]["get"]
    assert info["tags"] == ["modules::user"]
    assert info["responses"]["200"]["content"]["application/json"]["schema"] == {
        "$ref": "#/components/schemas/UserInfo"
    }
    assert "tags" not in paths["/"]["get"]


def test_generate_collapses_repeated_nest_prefix(tmp_path: Path):
    base = fixture_copy(tmp_path, "dup_path_app")
    result = run_generate(GeneratorConfig(base_dir=base), write=False)

    assert result.output_path is None
    assert not (base / "openapi.json").exists()
    assert set(result.document["paths"]) == {"/", "/api/v1/user/login"}
    assert result.document["paths"]["/api/v1/user/login"]["get"]["operationId"] == "login"


def test_generate_is_idempotent(tmp_path: Path):
    base = fixture_copy(tmp_path, "simple_app")
    config = GeneratorConfig(base_dir=base, output="docs/api.json")

    run_generate(config)
    first = (base / "docs" / "api.json").read_bytes()
    run_generate(config)
    assert (base / "docs" / "api.json").read_bytes() == first


def test_generate_missing_model_files_still_writes(tmp_path: Path, caplog):
    caplog.set_level(logging.WARNING)
    base = tmp_path / "app"
    write(
        base / "src" / "main.rs",
        """
        fn app() -> Router {
            Router::new().route("/health", get(health))
        }

        async fn health() -> &'static str {
            "ok"
        }
        """,
    )
    result = run_generate(GeneratorConfig(base_dir=base))

    assert result.models == {}
    assert "Model file not found" in caplog.text
    op = result.document["paths"]["/health"]["get"]
    assert op["operationId"] == "health"
    assert op["responses"]["200"]["content"]["application/json"]["schema"] == {"type": "object"}
    assert "parameters" not in op
    assert "requestBody" not in op


def test_handler_missing_in_module_is_skipped(tmp_path: Path, caplog):
    caplog.set_level(logging.WARNING)
    base = tmp_path / "app"
    write(base / "src" / "main.rs", 'fn app() -> Router { Router::new().nest("/a", api::router()) }')
    write(base / "src" / "api.rs", 'pub fn router() -> Router { Router::new().route("/x", get(nowhere)) }')

    result = run_generate(GeneratorConfig(base_dir=base), write=False)
    assert len(result.routes) == 1
    assert result.handlers == {}
    assert result.document["paths"] == {}
    assert "nowhere" in caplog.text


def test_fatal_errors(tmp_path: Path):
    with pytest.raises(BaseDirNotFoundError):
        resolve_routes(GeneratorConfig(base_dir=tmp_path / "nope"))

    with pytest.raises(HandlerFileNotFoundError):
        resolve_routes(GeneratorConfig(base_dir=tmp_path))

    write(tmp_path / "src" / "main.rs", "fn app( {")
    with pytest.raises(RustParseError):
        resolve_routes(GeneratorConfig(base_dir=tmp_path))


def test_output_path_is_a_directory(tmp_path: Path):
    write(tmp_path / "src" / "main.rs", 'fn app() -> Router { Router::new() }')
    (tmp_path / "out").mkdir()
    with pytest.raises(OutputWriteError):
        run_generate(GeneratorConfig(base_dir=tmp_path, output="out"))


def test_missing_handler_is_searched_once(tmp_path: Path, caplog):
    caplog.set_level(logging.WARNING)
    base = tmp_path / "app"
    write(
        base / "src" / "main.rs",
        """
        fn app() -> Router {
            Router::new()
                .route("/a", get(ghost))
                .route("/b", post(ghost))
        }
        """,
    )
    result = run_generate(GeneratorConfig(base_dir=base), write=False)

    assert len(result.routes) == 2
    assert result.handlers == {}
    pipeline_misses = [
        r for r in caplog.records
        if r.name == "axumdoc.orchestrator.pipeline" and "ghost" in r.getMessage()
    ]
    assert len(pipeline_misses) == 1
