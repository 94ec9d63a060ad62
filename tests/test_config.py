"""Tests for clextract.config."""

from clextract.config import ExtractConfig, _apply, _read_toml, load_config


# ---------------------------------------------------------------------------
# _read_toml
# ---------------------------------------------------------------------------


def test_read_toml_success(tmp_path):
    toml_file = tmp_path / "test.toml"
    toml_file.write_text("[tool.clextract]\nseparator = \"x\"\n", encoding="utf-8")
    result = _read_toml(toml_file)
    assert result == {"tool": {"clextract": {"separator": "x"}}}


def test_read_toml_missing_file(tmp_path):
    assert _read_toml(tmp_path / "nonexistent.toml") == {}


def test_read_toml_invalid_toml(tmp_path):
    bad_file = tmp_path / "bad.toml"
    bad_file.write_bytes(b"\x80\x81\x82")
    assert _read_toml(bad_file) == {}


# ---------------------------------------------------------------------------
# _apply
# ---------------------------------------------------------------------------


def test_defaults():
    cfg = ExtractConfig()
    assert cfg.clang_args == ["-x", "c++", "-std=c++17"]
    assert cfg.libclang_path is None
    assert cfg.ignore_parse_errors is False
    assert cfg.separator == "_"
    assert cfg.max_name_attempts == 64
    assert cfg.storage_class == "static"


def test_default_clang_args_not_shared():
    a = ExtractConfig()
    a.clang_args.append("-DX")
    assert ExtractConfig().clang_args == ["-x", "c++", "-std=c++17"]


def test_apply_empty_dict():
    cfg = ExtractConfig()
    _apply(cfg, {})
    assert cfg == ExtractConfig()


def test_apply_known_key():
    cfg = ExtractConfig()
    _apply(cfg, {"max_name_attempts": 3})
    assert cfg.max_name_attempts == 3


def test_apply_unknown_key_ignored():
    cfg = ExtractConfig()
    _apply(cfg, {"unknown_option": 999})
    assert cfg == ExtractConfig()


# ---------------------------------------------------------------------------
# load_config
# ---------------------------------------------------------------------------


def test_load_config_no_files(tmp_path):
    assert load_config(tmp_path) == ExtractConfig()


def test_load_config_from_pyproject(tmp_path):
    (tmp_path / "pyproject.toml").write_text(
        "[tool.clextract]\nstorage_class = \"\"\nclang_args = [\"-std=c++20\"]\n",
        encoding="utf-8",
    )
    cfg = load_config(tmp_path)
    assert cfg.storage_class == ""
    assert cfg.clang_args == ["-std=c++20"]


def test_load_config_local_overrides_pyproject(tmp_path):
    (tmp_path / "pyproject.toml").write_text(
        "[tool.clextract]\nseparator = \"x\"\nmax_name_attempts = 5\n",
        encoding="utf-8",
    )
    (tmp_path / ".clextract.toml").write_text("separator = \"_\"\n", encoding="utf-8")
    cfg = load_config(tmp_path)
    assert cfg.separator == "_"
    assert cfg.max_name_attempts == 5


def test_load_config_pyproject_without_tool_section(tmp_path):
    (tmp_path / "pyproject.toml").write_text(
        "[project]\nname = \"demo\"\n", encoding="utf-8"
    )
    assert load_config(tmp_path) == ExtractConfig()


def test_load_config_defaults_to_cwd(tmp_path, monkeypatch):
    (tmp_path / ".clextract.toml").write_text(
        "ignore_parse_errors = true\n", encoding="utf-8"
    )
    monkeypatch.chdir(tmp_path)
    assert load_config().ignore_parse_errors is True
