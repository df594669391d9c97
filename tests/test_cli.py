from pathlib import Path
import json
import shutil
import textwrap

from typer.testing import CliRunner

from axumdoc.cli import app

FIXTURES = Path(__file__).parent / "fixtures"

runner = CliRunner()


def write(p: Path, s: str) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(textwrap.dedent(s), encoding="utf-8")


def test_generate_writes_document(tmp_path: Path):
    base = tmp_path / "simple_app"
    shutil.copytree(FIXTURES / "simple_app", base)

    result = runner.invoke(app, ["generate", "--base-dir", str(base), "--output", "api.json", "--title", "Demo"])
    assert result.exit_code == 0, result.output
    assert "Routes found" in result.output

    doc = json.loads((base / "api.json").read_text(encoding="utf-8"))
    assert doc["info"]["title"] == "Demo"
    assert set(doc["paths"]) == {"/", "/login", "/user/:id"}


def test_generate_with_missing_model_file_succeeds(tmp_path: Path):
    write(tmp_path / "src" / "main.rs", 'fn app() -> Router { Router::new().route("/", get(root)) }\nasync fn root() {}\n')

    result = runner.invoke(app, ["generate", "-b", str(tmp_path), "-m", "src/nope.rs"])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "openapi.json").is_file()


def test_generate_missing_base_dir_fails(tmp_path: Path):
    result = runner.invoke(app, ["generate", "--base-dir", str(tmp_path / "missing")])
    assert result.exit_code == 1
    assert not (tmp_path / "missing").exists()


def test_generate_missing_handler_file_fails(tmp_path: Path):
    result = runner.invoke(app, ["generate", "--base-dir", str(tmp_path), "--handler-file", "src/app.rs"])
    assert result.exit_code == 1
    assert not (tmp_path / "openapi.json").exists()


def test_generate_unparseable_handler_file_fails(tmp_path: Path):
    write(tmp_path / "src" / "main.rs", "fn broken( {\n")
    result = runner.invoke(app, ["generate", "--base-dir", str(tmp_path)])
    assert result.exit_code == 1
    assert not (tmp_path / "openapi.json").exists()


def test_generate_unwritable_output_fails(tmp_path: Path):
    write(tmp_path / "src" / "main.rs", "fn app() -> Router { Router::new() }\n")
    (tmp_path / "out").mkdir()
    result = runner.invoke(app, ["generate", "--base-dir", str(tmp_path), "--output", "out"])
    assert result.exit_code == 1


def test_routes_json(tmp_path: Path):
    base = tmp_path / "modular_app"
    shutil.copytree(FIXTURES / "modular_app", base)

    result = runner.invoke(app, ["routes", "--base-dir", str(base), "--format", "json"])
    assert result.exit_code == 0, result.output
    rows = json.loads(result.stdout)
    assert [(r["method"], r["path"]) for r in rows] == [
        ("GET", "/"),
        ("POST", "/login"),
        ("GET", "/api/v1/user/info"),
    ]
    assert rows[0]["module"] is None
    assert rows[1]["module"] == ["modules", "auth"]
    assert not (base / "openapi.json").exists()


def test_routes_table(tmp_path: Path):
    base = tmp_path / "simple_app"
    shutil.copytree(FIXTURES / "simple_app", base)

    result = runner.invoke(app, ["routes", "-b", str(base)])
    assert result.exit_code == 0, result.output
    assert "Routes:" in result.output
    assert "/login" in result.output


def test_routes_rejects_unknown_format(tmp_path: Path):
    result = runner.invoke(app, ["routes", "-b", str(tmp_path), "--format", "xml"])
    assert result.exit_code != 0
