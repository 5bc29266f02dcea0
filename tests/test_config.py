"""Tests for httpchain.config -- XDG paths, atomic writes, profiles, precedence."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from httpchain.config import (
    _atomic_write,
    delete_profile,
    get_config_dir,
    get_profiles_dir,
    list_profiles,
    load_profile,
    profile_exists,
    resolve_credential,
    resolve_profile,
    save_profile,
)
from httpchain.exceptions import ConfigError
from httpchain.models import AuthConfig, Profile, RetryConfig
from httpchain.serialization import NamingStrategy


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestXDGPaths:
    def test_config_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("httpchain.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_config_dir()
        assert result == tmp_path / ".config" / "httpchain"
        assert result.is_dir()

    def test_config_dir_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        custom = tmp_path / "custom_config"
        monkeypatch.setattr("httpchain.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(custom))

        assert get_config_dir() == custom / "httpchain"

    def test_config_dir_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("httpchain.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert get_config_dir() == tmp_path / ".httpchain"

    def test_profiles_dir_is_inside_config_dir(self, isolated_config: Path) -> None:
        result = get_profiles_dir()
        assert result == isolated_config / "config" / "httpchain" / "profiles"
        assert result.is_dir()


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_creates_file_with_content(self, tmp_path: Path) -> None:
        target = tmp_path / "nested" / "out.json"
        _atomic_write(target, '{"a": 1}')
        assert target.read_text(encoding="utf-8") == '{"a": 1}'

    def test_leaves_no_temp_files(self, tmp_path: Path) -> None:
        target = tmp_path / "out.json"
        _atomic_write(target, "one")
        _atomic_write(target, "two")
        assert [p.name for p in tmp_path.iterdir()] == ["out.json"]
        assert target.read_text(encoding="utf-8") == "two"


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


class TestProfiles:
    def test_save_and_load_round_trip(self, isolated_config: Path) -> None:
        profile = Profile(
            name="github",
            base_url="https://api.github.com",
            naming_strategy=NamingStrategy.SNAKE,
            auth=AuthConfig(type="bearer", source="env:GITHUB_TOKEN"),
            retry=RetryConfig(enabled=True, budget=2),
        )
        path = save_profile(profile)

        assert path.name == "github.json"
        assert load_profile("github") == profile

    def test_list_and_exists(self, isolated_config: Path) -> None:
        save_profile(Profile(name="b"))
        save_profile(Profile(name="a"))

        assert list_profiles() == ["a", "b"]
        assert profile_exists("a")
        assert not profile_exists("c")

    def test_delete(self, isolated_config: Path) -> None:
        save_profile(Profile(name="gone"))
        delete_profile("gone")
        assert list_profiles() == []
        with pytest.raises(ConfigError):
            delete_profile("gone")

    def test_load_missing(self, isolated_config: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_profile("nope")

    def test_load_invalid_json(self, isolated_config: Path) -> None:
        (get_profiles_dir() / "broken.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid profile"):
            load_profile("broken")

    def test_load_invalid_schema(self, isolated_config: Path) -> None:
        data = {"name": "bad", "retry": {"budget": -1}}
        (get_profiles_dir() / "bad.json").write_text(json.dumps(data), encoding="utf-8")
        with pytest.raises(ConfigError):
            load_profile("bad")

    @pytest.mark.parametrize("name", ["", "../x", "a/b", ".hidden"])
    def test_invalid_names(self, isolated_config: Path, name: str) -> None:
        with pytest.raises(ConfigError, match="Invalid profile name"):
            save_profile(Profile(name=name))


class TestResolveProfile:
    def test_nothing_configured(self, isolated_config: Path) -> None:
        assert resolve_profile() is None

    def test_single_stored_profile_is_used(self, isolated_config: Path) -> None:
        save_profile(Profile(name="only", base_url="https://only.example.com"))
        assert resolve_profile().name == "only"

    def test_env_profile(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        save_profile(Profile(name="a"))
        save_profile(Profile(name="b"))
        monkeypatch.setenv("HTTPCHAIN_PROFILE", "b")
        assert resolve_profile().name == "b"

    def test_cli_beats_env(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        save_profile(Profile(name="a"))
        save_profile(Profile(name="b"))
        monkeypatch.setenv("HTTPCHAIN_PROFILE", "b")
        assert resolve_profile("a").name == "a"

    def test_base_url_override(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        save_profile(Profile(name="a", base_url="https://stored.example.com"))
        monkeypatch.setenv("HTTPCHAIN_BASE_URL", "https://env.example.com")

        assert resolve_profile("a").base_url == "https://env.example.com"
        assert resolve_profile("a", "https://cli.example.com").base_url == "https://cli.example.com"

    def test_adhoc_profile_from_base_url(self, isolated_config: Path) -> None:
        profile = resolve_profile(cli_base_url="https://adhoc.example.com")
        assert profile.name == "adhoc"
        assert profile.base_url == "https://adhoc.example.com"


# ---------------------------------------------------------------------------
# Credential sources
# ---------------------------------------------------------------------------


class TestResolveCredential:
    def test_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SOME_SECRET", "s3cret")
        assert resolve_credential("env:SOME_SECRET") == "s3cret"

    def test_file(self, tmp_path: Path) -> None:
        secret = tmp_path / "token.txt"
        secret.write_text("  abc\n", encoding="utf-8")
        assert resolve_credential(f"file:{secret}") == "abc"

    def test_value(self) -> None:
        assert resolve_credential("value:literal:with:colons") == "literal:with:colons"

    @pytest.mark.parametrize("source", [None, "", "vault:path", "file:/does/not/exist"])
    def test_unresolvable(self, source) -> None:
        with pytest.raises(ConfigError):
            resolve_credential(source)
