"""Tests for oc_cli.config module."""

import tempfile
from pathlib import Path

import pytest
import yaml

from oc_cli.config import (
    CliOverrides,
    ConfigFile,
    ConfigWarning,
    Profile,
    _deep_merge,
    _load_yaml_file,
    display_config_warnings,
    get_global_config_source,
    get_profile,
    get_profiles,
    load_config_file,
    remove_profile,
    resolve_config,
    resolve_global_prefix,
    save_config_file,
    save_profile,
    set_global_value,
)
from oc_cli.errors import ConfigError
from oc_cli.xdg_paths import get_config_file_path, get_project_config_path


def one_profile(title_prefix: str | None = None) -> ConfigFile:
    return ConfigFile(
        title_prefix=title_prefix,
        profiles={"web": Profile(base_url="http://localhost:4096", directory="/src/web", default_agent="coder")},
    )


class TestProfile:
    """Tests for Profile model."""

    def test_defaults(self) -> None:
        """Should only require base_url."""
        profile = Profile(base_url="http://x")
        assert profile.directory is None
        assert profile.default_agent is None
        assert profile.tags == []

    def test_missing_base_url(self) -> None:
        """Should reject profiles without base_url."""
        with pytest.raises(ValueError):
            Profile.model_validate({"directory": "/x"})


class TestDeepMerge:
    """Tests for _deep_merge function."""

    def test_flat_merge(self) -> None:
        """Should merge flat dicts with override winning."""
        base: dict[str, object] = {"a": 1, "b": 2}
        override: dict[str, object] = {"b": 3, "c": 4}
        assert _deep_merge(base, override) == {"a": 1, "b": 3, "c": 4}

    def test_nested_merge(self) -> None:
        """Should merge profiles key by key."""
        base: dict[str, object] = {"profiles": {"a": {"base_url": "http://a"}}}
        override: dict[str, object] = {"profiles": {"b": {"base_url": "http://b"}}}
        merged = _deep_merge(base, override)
        assert merged == {"profiles": {"a": {"base_url": "http://a"}, "b": {"base_url": "http://b"}}}

    def test_does_not_mutate_base(self) -> None:
        """Should return a new dict."""
        base: dict[str, object] = {"a": 1}
        _deep_merge(base, {"a": 2})
        assert base == {"a": 1}


class TestLoadYamlFile:
    """Tests for _load_yaml_file function."""

    def test_missing_file(self) -> None:
        """Should return empty dict for a missing file."""
        data, warnings = _load_yaml_file(Path("/nonexistent/config.yaml"))
        assert data == {}
        assert warnings == []

    def test_invalid_yaml(self) -> None:
        """Should return a warning for unparsable YAML."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.yaml"
            path.write_text("profiles: [unclosed")
            data, warnings = _load_yaml_file(path)
            assert data == {}
            assert len(warnings) == 1
            assert "YAML parse error" in warnings[0].message


class TestLoadConfigFile:
    """Tests for load_config_file function."""

    def test_missing_file_defaults(self) -> None:
        """Should return an empty config when nothing exists."""
        with tempfile.TemporaryDirectory() as tmpdir:
            config, warnings = load_config_file(Path(tmpdir) / "config.yaml")
            assert config.profiles == {}
            assert config.title_prefix is None
            assert warnings == []

    def test_loads_profiles(self) -> None:
        """Should parse profiles from YAML."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.yaml"
            path.write_text(
                yaml.dump({"title_prefix": "[me]", "profiles": {"web": {"base_url": "http://h", "tags": ["a"]}}})
            )
            config, warnings = load_config_file(path)
            assert warnings == []
            assert config.title_prefix == "[me]"
            assert config.profiles["web"].tags == ["a"]

    def test_project_config_merged(self) -> None:
        """Should overlay the project config on the user config."""
        with tempfile.TemporaryDirectory() as tmpdir:
            user = Path(tmpdir) / "config.yaml"
            user.write_text(yaml.dump({"title_prefix": "[me]", "profiles": {"web": {"base_url": "http://user"}}}))
            project = Path(tmpdir) / "project"
            project.mkdir()
            (project / ".oc-cli.yaml").write_text(yaml.dump({"profiles": {"web": {"directory": "/proj"}}}))

            config, _ = load_config_file(user, project_dir=project)
            assert config.title_prefix == "[me]"
            assert config.profiles["web"].base_url == "http://user"
            assert config.profiles["web"].directory == "/proj"

    def test_ignore_parent_configs(self) -> None:
        """Should skip the user config when the project asks to."""
        with tempfile.TemporaryDirectory() as tmpdir:
            user = Path(tmpdir) / "config.yaml"
            user.write_text(yaml.dump({"title_prefix": "[me]", "profiles": {"web": {"base_url": "http://user"}}}))
            project = Path(tmpdir) / "project"
            project.mkdir()
            (project / ".oc-cli.yaml").write_text(
                yaml.dump({"ignore_parent_configs": True, "profiles": {"local": {"base_url": "http://local"}}})
            )

            config, _ = load_config_file(user, project_dir=project)
            assert config.title_prefix is None
            assert list(config.profiles) == ["local"]

    def test_invalid_profile_dropped(self) -> None:
        """Should warn and keep the valid profiles."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.yaml"
            path.write_text(
                yaml.dump({"profiles": {"good": {"base_url": "http://good"}, "bad": {"directory": "/no-url"}}})
            )
            config, warnings = load_config_file(path)
            assert list(config.profiles) == ["good"]
            assert len(warnings) == 1
            assert warnings[0].field_name == "profiles.bad.base_url"


class TestSaveAndProfiles:
    """Tests for saving and editing profiles."""

    def test_save_profile_roundtrip(self) -> None:
        """Should persist profiles to YAML."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "sub" / "config.yaml"
            save_profile("web", Profile(base_url="http://h", tags=["x"]), path)

            assert path.exists()
            assert get_profile("web", path) == Profile(base_url="http://h", tags=["x"])
            raw = yaml.safe_load(path.read_text())
            assert raw == {"profiles": {"web": {"base_url": "http://h", "tags": ["x"]}}}

    def test_save_keeps_title_prefix(self) -> None:
        """Should not drop global keys when adding a profile."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.yaml"
            set_global_value("title_prefix", "[me]", path)
            save_profile("web", Profile(base_url="http://h"), path)
            config, _ = load_config_file(path)
            assert config.title_prefix == "[me]"
            assert "web" in config.profiles

    def test_remove_profile(self) -> None:
        """Should remove existing profiles and report missing ones."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.yaml"
            save_profile("web", Profile(base_url="http://h"), path)
            assert remove_profile("web", path) is True
            assert remove_profile("web", path) is False
            assert get_profiles(path) == {}

    def test_set_unknown_global_key(self) -> None:
        """Should reject unknown global keys."""
        with tempfile.TemporaryDirectory() as tmpdir, pytest.raises(ConfigError, match="Unknown global config key"):
            set_global_value("base_url", "x", Path(tmpdir) / "config.yaml")

    def test_save_config_file_omits_defaults(self) -> None:
        """Should not write default values."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "config.yaml"
            save_config_file(ConfigFile(), path)
            assert yaml.safe_load(path.read_text()) == {}


class TestResolveConfig:
    """Tests for resolve_config function."""

    def test_single_profile_selected(self) -> None:
        """Should pick the only profile implicitly."""
        resolved = resolve_config(one_profile(), env={})
        assert resolved.active_profile == "web"
        assert resolved.base_url == "http://localhost:4096"
        assert resolved.directory == "/src/web"
        assert resolved.default_agent == "coder"
        assert resolved.title_prefix == "[web] "

    def test_global_prefix_prepended(self) -> None:
        """Should combine the global prefix with the profile tag."""
        resolved = resolve_config(one_profile("[bishop]"), env={})
        assert resolved.title_prefix == "[bishop][web] "

    def test_no_profiles(self) -> None:
        """Should fail when nothing is configured."""
        with pytest.raises(ConfigError, match="No profiles configured"):
            resolve_config(ConfigFile(), env={})

    def test_multiple_profiles_need_flag(self) -> None:
        """Should require -p when several profiles exist."""
        config = ConfigFile(profiles={"a": Profile(base_url="http://a"), "b": Profile(base_url="http://b")})
        with pytest.raises(ConfigError, match="Multiple profiles configured: a, b"):
            resolve_config(config, env={})

        resolved = resolve_config(config, CliOverrides(profile="b"), env={})
        assert resolved.base_url == "http://b"

    def test_unknown_profile(self) -> None:
        """Should list available profiles."""
        with pytest.raises(ConfigError, match='Profile "nope" not found. Available: web'):
            resolve_config(one_profile(), CliOverrides(profile="nope"), env={})

    def test_priority(self) -> None:
        """Should prefer CLI flags over env over the file."""
        env = {"OC_BASE_URL": "http://env", "OC_TITLE_PREFIX": "[env]"}
        resolved = resolve_config(one_profile("[file]"), env=env)
        assert resolved.base_url == "http://env"
        assert resolved.title_prefix == "[env][web] "

        overrides = CliOverrides(base_url="http://flag", title_prefix="[flag]")
        resolved = resolve_config(one_profile("[file]"), overrides, env=env)
        assert resolved.base_url == "http://flag"
        assert resolved.title_prefix == "[flag][web] "


class TestGlobalConfigSource:
    """Tests for get_global_config_source and resolve_global_prefix."""

    def test_sources(self) -> None:
        """Should report where title_prefix comes from."""
        config = ConfigFile(title_prefix="[file]")
        assert get_global_config_source("title_prefix", config, CliOverrides(title_prefix="x"), env={}) == "cli flag"
        assert get_global_config_source("title_prefix", config, env={"OC_TITLE_PREFIX": "y"}) == (
            "env (OC_TITLE_PREFIX)"
        )
        assert get_global_config_source("title_prefix", config, env={}) == "config file"
        assert get_global_config_source("title_prefix", ConfigFile(), env={}) == "default"

    def test_resolve_global_prefix(self) -> None:
        """Should fall back to an empty prefix."""
        assert resolve_global_prefix(ConfigFile(), CliOverrides(), env={}) == ""
        assert resolve_global_prefix(ConfigFile(title_prefix="[f]"), CliOverrides(), env={}) == "[f]"


class TestConfigPaths:
    """Tests for config file locations."""

    def test_user_config_follows_xdg(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Should place the user config under XDG_CONFIG_HOME."""
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        assert get_config_file_path() == tmp_path / "oc-cli" / "config.yaml"

    def test_project_config(self, tmp_path: Path) -> None:
        """Should look for .oc-cli.yaml in the project directory."""
        assert get_project_config_path(tmp_path) == tmp_path / ".oc-cli.yaml"


class TestDisplayConfigWarnings:
    """Tests for display_config_warnings function."""

    def test_no_warnings_no_output(self) -> None:
        """Should not print anything when no warnings."""
        from io import StringIO

        from rich.console import Console

        output = StringIO()
        test_console = Console(file=output, no_color=True)
        display_config_warnings([], test_console)
        assert output.getvalue() == ""

    def test_displays_warnings(self) -> None:
        """Should display warnings in a panel."""
        from io import StringIO

        from rich.console import Console

        output = StringIO()
        test_console = Console(file=output, no_color=True)
        warnings = [
            ConfigWarning(file="config.yaml", field_name="profiles.web", message="invalid value", value="bad"),
        ]
        display_config_warnings(warnings, test_console)
        result = output.getvalue()
        assert "Config Warnings" in result
        assert "config.yaml" in result
        assert "invalid value" in result
