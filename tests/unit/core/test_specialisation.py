"""Unit tests for specialisation lookup."""

import logging
from collections.abc import Callable
from pathlib import Path

import pytest
from nixgen.core.specialisation import (
    collect_specialisations,
    find_default_specialisation,
    resolve_specialisation,
    specialisation_exists,
    switch_to_configuration_path,
)


class TestCollectSpecialisations:
    """Tests for collect_specialisations."""

    def test_sorted_names(self, make_closure: Callable[..., Path]) -> None:
        """Specialisation directories are listed by name."""
        closure = make_closure("a", specialisations=("work", "gaming"))

        assert collect_specialisations(closure) == ["gaming", "work"]

    def test_none(self, make_closure: Callable[..., Path]) -> None:
        """A closure without specialisations yields an empty list."""
        assert collect_specialisations(make_closure("a")) == []

    def test_ignores_files(self, make_closure: Callable[..., Path]) -> None:
        """Stray files in the specialisation directory are skipped."""
        closure = make_closure("a", specialisations=("gaming",))
        (closure / "specialisation" / "README").write_text("")

        assert collect_specialisations(closure) == ["gaming"]


class TestSwitchToConfigurationPath:
    """Tests for switch_to_configuration_path."""

    def test_base(self, tmp_path: Path) -> None:
        """The base script lives in bin/."""
        assert switch_to_configuration_path(tmp_path) == tmp_path / "bin" / "switch-to-configuration"

    def test_specialisation(self, tmp_path: Path) -> None:
        """Specialisation scripts live under specialisation/<name>/bin/."""
        expected = tmp_path / "specialisation" / "gaming" / "bin" / "switch-to-configuration"
        assert switch_to_configuration_path(tmp_path, "gaming") == expected

    def test_exists(self, make_closure: Callable[..., Path]) -> None:
        """The base configuration always exists; named ones must have a script."""
        closure = make_closure("a", specialisations=("gaming",))

        assert specialisation_exists(closure, None)
        assert specialisation_exists(closure, "gaming")
        assert not specialisation_exists(closure, "work")


class TestFindDefaultSpecialisation:
    """Tests for the default bundled in a closure."""

    def test_reads_bundled_setting(self, make_closure: Callable[..., Path]) -> None:
        """apply.specialisation from the closure's settings is returned."""
        closure = make_closure("a", specialisations=("gaming",), default_specialisation="gaming")

        assert find_default_specialisation(closure) == "gaming"

    def test_missing_file(self, make_closure: Callable[..., Path]) -> None:
        """No bundled settings means no default."""
        assert find_default_specialisation(make_closure("a")) is None

    def test_malformed_file(self, make_closure: Callable[..., Path]) -> None:
        """Unparseable bundled settings are ignored."""
        closure = make_closure("a", default_specialisation="gaming")
        (closure / "etc" / "nixos-cli" / "config.toml").write_text("[apply\n")

        assert find_default_specialisation(closure) is None

    def test_empty_value(self, make_closure: Callable[..., Path]) -> None:
        """An empty specialisation name is not a default."""
        closure = make_closure("a", default_specialisation="")

        assert find_default_specialisation(closure) is None


class TestResolveSpecialisation:
    """Tests for resolve_specialisation."""

    def test_explicit_wins(self, make_closure: Callable[..., Path]) -> None:
        """The explicit flag beats the configured and bundled defaults."""
        closure = make_closure(
            "a", specialisations=("gaming", "work"), default_specialisation="gaming"
        )

        assert resolve_specialisation(closure, "work", "gaming") == "work"

    def test_configured_before_bundled(self, make_closure: Callable[..., Path]) -> None:
        """The configured default beats the bundled one."""
        closure = make_closure(
            "a", specialisations=("gaming", "work"), default_specialisation="gaming"
        )

        assert resolve_specialisation(closure, None, "work") == "work"

    def test_bundled_default(self, make_closure: Callable[..., Path]) -> None:
        """Without flag or setting, the closure's default is used."""
        closure = make_closure("a", specialisations=("gaming",), default_specialisation="gaming")

        assert resolve_specialisation(closure) == "gaming"

    def test_base_configuration(self, make_closure: Callable[..., Path]) -> None:
        """No specialisation anywhere means the base configuration."""
        assert resolve_specialisation(make_closure("a")) is None

    def test_missing_falls_back_with_warning(
        self,
        make_closure: Callable[..., Path],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """A missing specialisation warns and falls back to the base configuration."""
        closure = make_closure("a", specialisations=("work",))

        with caplog.at_level(logging.WARNING):
            result = resolve_specialisation(closure, "gaming")

        assert result is None
        assert "Specialisation 'gaming' does not exist" in caplog.text
        assert "Available specialisations: work" in caplog.text
