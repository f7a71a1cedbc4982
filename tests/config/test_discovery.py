"""Tests for schemalens.toml discovery."""

from __future__ import annotations

from pathlib import Path

import pytest

from schemalens.config.discovery import (
    CONFIG_ENV_VAR,
    CONFIG_FILENAME,
    HIDDEN_CONFIG_FILENAME,
    find_config,
    user_config_path,
)


class TestFindConfig:
    def test_finds_in_start_dir(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILENAME).write_text("", encoding="utf-8")
        assert find_config(tmp_path) == (tmp_path / CONFIG_FILENAME).resolve()

    def test_walks_up(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILENAME).write_text("", encoding="utf-8")
        deep = tmp_path / "x" / "y" / "z"
        deep.mkdir(parents=True)
        assert find_config(deep) == (tmp_path / CONFIG_FILENAME).resolve()

    def test_not_found(self, tmp_path: Path) -> None:
        assert find_config(tmp_path) is None

    def test_env_var_wins(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / CONFIG_FILENAME).write_text("", encoding="utf-8")
        other = tmp_path / "elsewhere.toml"
        other.write_text("", encoding="utf-8")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(other))
        assert find_config(tmp_path) == other

    def test_env_var_missing_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / CONFIG_FILENAME).write_text("", encoding="utf-8")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "missing.toml"))
        assert find_config(tmp_path) is None

    def test_hidden_file(self, tmp_path: Path) -> None:
        (tmp_path / HIDDEN_CONFIG_FILENAME).write_text("", encoding="utf-8")
        assert find_config(tmp_path) == (tmp_path / HIDDEN_CONFIG_FILENAME).resolve()

    def test_visible_beats_hidden(self, tmp_path: Path) -> None:
        (tmp_path / HIDDEN_CONFIG_FILENAME).write_text("", encoding="utf-8")
        (tmp_path / CONFIG_FILENAME).write_text("", encoding="utf-8")
        assert find_config(tmp_path) == (tmp_path / CONFIG_FILENAME).resolve()

    def test_nearest_directory_wins(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILENAME).write_text("", encoding="utf-8")
        child = tmp_path / "child"
        child.mkdir()
        (child / HIDDEN_CONFIG_FILENAME).write_text("", encoding="utf-8")
        assert find_config(child) == (child / HIDDEN_CONFIG_FILENAME).resolve()


class TestUserConfig:
    def test_path_under_xdg(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        assert user_config_path() == tmp_path / "schemalens" / "config.toml"

    def test_fallback_to_user_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        xdg = tmp_path / "xdg"
        monkeypatch.setenv("XDG_CONFIG_HOME", str(xdg))
        user = user_config_path()
        user.parent.mkdir(parents=True)
        user.write_text("", encoding="utf-8")
        project = tmp_path / "work"
        project.mkdir()
        assert find_config(project) == user

    def test_project_file_beats_user_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        user = user_config_path()
        user.parent.mkdir(parents=True)
        user.write_text("", encoding="utf-8")
        project = tmp_path / "work"
        project.mkdir()
        (project / CONFIG_FILENAME).write_text("", encoding="utf-8")
        assert find_config(project) == (project / CONFIG_FILENAME).resolve()
