"""Unit tests for ProfileStore.

Tests for reconstructing generations from a fake profile directory.
"""

import logging
import os
from collections.abc import Callable
from pathlib import Path
from unittest.mock import patch

import pytest
from nixgen.core.errors import PermissionDeniedError, ResourceAccessError
from nixgen.core.profile import ProfileStore, parse_generation_link_name
from nixgen.models.generation import UNKNOWN, UNKNOWN_DATE


class TestParseGenerationLinkName:
    """Tests for the strict link name grammar."""

    def test_parses_number(self) -> None:
        """A well-formed link name yields its generation number."""
        assert parse_generation_link_name("system-42-link", "system") == 42

    def test_rejects_other_profile_with_shared_prefix(self) -> None:
        """Links of a profile sharing the name prefix are not matched."""
        assert parse_generation_link_name("system-foo-3-link", "system") is None

    def test_rejects_non_digit_middle(self) -> None:
        """The text between prefix and suffix must be all digits."""
        assert parse_generation_link_name("system-4a-link", "system") is None
        assert parse_generation_link_name("system--link", "system") is None

    def test_rejects_missing_suffix(self) -> None:
        """Entries without the -link suffix are skipped."""
        assert parse_generation_link_name("system-42", "system") is None
        assert parse_generation_link_name("system", "system") is None

    def test_rejects_non_ascii_digits(self) -> None:
        """Unicode digits are not generation numbers."""
        assert parse_generation_link_name("system-٤٢-link", "system") is None

    def test_rejects_zero(self) -> None:
        """Generation numbers start at 1."""
        assert parse_generation_link_name("system-0-link", "system") is None

    def test_named_profile(self) -> None:
        """Named profiles use their own prefix."""
        assert parse_generation_link_name("work-7-link", "work") == 7
        assert parse_generation_link_name("system-7-link", "work") is None


class TestProfileStoreInit:
    """Tests for ProfileStore initialization."""

    def test_default_profile_directory(self) -> None:
        """The system profile lives in /nix/var/nix/profiles."""
        store = ProfileStore()
        assert store.profile_dir == Path("/nix/var/nix/profiles")
        assert store.profile_path == Path("/nix/var/nix/profiles/system")

    def test_named_profile_directory(self) -> None:
        """Named profiles live in the system-profiles directory."""
        store = ProfileStore("work")
        assert store.profile_dir == Path("/nix/var/nix/profiles/system-profiles")
        assert store.profile_path == Path("/nix/var/nix/profiles/system-profiles/work")

    def test_generation_link(self, profile_dir: Path) -> None:
        """generation_link builds the <profile>-<N>-link path."""
        store = ProfileStore(profile_dir=profile_dir)
        assert store.generation_link(3) == profile_dir / "system-3-link"


class TestGatherGenerations:
    """Tests for ProfileStore.gather_generations."""

    def test_reads_generations_sorted(
        self,
        profile_dir: Path,
        make_generation: Callable[..., Path],
        set_current: Callable[..., None],
    ) -> None:
        """Generations are returned ascending by number."""
        for number in (10, 2, 7):
            make_generation(number)
        set_current(7)

        generations = ProfileStore(profile_dir=profile_dir).gather_generations()

        assert [g.number for g in generations] == [2, 7, 10]

    def test_marks_exactly_one_current(
        self,
        profile_dir: Path,
        make_generation: Callable[..., Path],
        set_current: Callable[..., None],
    ) -> None:
        """Only the generation the profile link points at is current."""
        for number in (1, 2, 3):
            make_generation(number)
        set_current(2)

        generations = ProfileStore(profile_dir=profile_dir).gather_generations()

        assert [g.number for g in generations if g.is_current] == [2]

    def test_reads_metadata(
        self,
        profile_dir: Path,
        make_generation: Callable[..., Path],
        set_current: Callable[..., None],
    ) -> None:
        """Version, kernel, description and specialisations are read."""
        make_generation(
            1,
            version="24.05.1",
            description="new kernel",
            kernel="6.9.1",
            specialisations=("gaming", "battery"),
        )
        set_current(1)

        (generation,) = ProfileStore(profile_dir=profile_dir).gather_generations()

        assert generation.nixos_version == "24.05.1"
        assert generation.nixpkgs_revision == "abcdef0123"
        assert generation.kernel_version == "6.9.1"
        assert generation.description == "new kernel"
        assert generation.specialisations == ("battery", "gaming")
        assert generation.has_creation_date

    def test_missing_metadata_degrades(
        self,
        profile_dir: Path,
        make_generation: Callable[..., Path],
        set_current: Callable[..., None],
    ) -> None:
        """Unreadable fields become placeholders instead of failing."""
        make_generation(1, version=None, kernel=None)
        set_current(1)

        (generation,) = ProfileStore(profile_dir=profile_dir).gather_generations()

        assert generation.nixos_version == UNKNOWN
        assert generation.kernel_version == UNKNOWN
        assert generation.description == UNKNOWN
        assert generation.specialisations == ()

    def test_falls_back_to_plain_version_file(
        self,
        profile_dir: Path,
        make_generation: Callable[..., Path],
        set_current: Callable[..., None],
    ) -> None:
        """The plain nixos-version file is used when there's no manifest."""
        link = make_generation(1, version=None)
        (link / "nixos-version").write_text("23.11.5\n")
        set_current(1)

        (generation,) = ProfileStore(profile_dir=profile_dir).gather_generations()

        assert generation.nixos_version == "23.11.5"

    def test_malformed_manifest_degrades(
        self,
        profile_dir: Path,
        make_generation: Callable[..., Path],
        set_current: Callable[..., None],
    ) -> None:
        """A corrupt nixos-version.json does not fail the record."""
        link = make_generation(1)
        (link / "nixos-version.json").write_text("{not json")
        set_current(1)

        (generation,) = ProfileStore(profile_dir=profile_dir).gather_generations()

        assert generation.nixos_version == UNKNOWN

    def test_dangling_link_degrades(
        self,
        profile_dir: Path,
        set_current: Callable[..., None],
    ) -> None:
        """A link whose closure is gone still yields a record."""
        (profile_dir / "system-5-link").symlink_to(profile_dir / "missing")
        set_current(5)

        (generation,) = ProfileStore(profile_dir=profile_dir).gather_generations()

        assert generation.number == 5
        assert generation.is_current
        assert generation.nixos_version == UNKNOWN

    def test_skips_other_profiles(
        self,
        profile_dir: Path,
        make_generation: Callable[..., Path],
        set_current: Callable[..., None],
    ) -> None:
        """Links of a profile sharing the name prefix are ignored."""
        make_generation(1)
        make_generation(3, profile="system-foo")
        (profile_dir / "system-profiles").mkdir()
        set_current(1)

        generations = ProfileStore(profile_dir=profile_dir).gather_generations()

        assert [g.number for g in generations] == [1]

    def test_unresolved_current_warns(
        self,
        profile_dir: Path,
        make_generation: Callable[..., Path],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Without a profile link no generation is current and a warning is logged."""
        make_generation(1)
        make_generation(2)

        with caplog.at_level(logging.WARNING):
            generations = ProfileStore(profile_dir=profile_dir).gather_generations()

        assert not any(g.is_current for g in generations)
        assert "Unable to determine the current generation" in caplog.text

    def test_empty_profile(self, profile_dir: Path) -> None:
        """An empty profile directory yields no generations."""
        assert ProfileStore(profile_dir=profile_dir).gather_generations() == []

    def test_missing_directory_raises(self, tmp_path: Path) -> None:
        """A missing profile directory is a resource access error."""
        store = ProfileStore(profile_dir=tmp_path / "missing")

        with pytest.raises(ResourceAccessError, match="Cannot read profile directory"):
            store.gather_generations()

    def test_permission_denied_raises(self, profile_dir: Path) -> None:
        """An unreadable profile directory is a permission error."""
        store = ProfileStore(profile_dir=profile_dir)

        with (
            patch("nixgen.core.profile.os.listdir", side_effect=PermissionError(13, "denied")),
            pytest.raises(PermissionDeniedError),
        ):
            store.gather_generations()

    def test_new_generation_after_set(
        self,
        profile_dir: Path,
        make_generation: Callable[..., Path],
        set_current: Callable[..., None],
    ) -> None:
        """Listing after a profile set shows exactly one new, current generation."""
        make_generation(1)
        make_generation(2)
        set_current(2)
        store = ProfileStore(profile_dir=profile_dir)
        before = store.gather_generations()

        make_generation(3)
        set_current(3)
        after = store.gather_generations()

        assert len(after) == len(before) + 1
        assert after[-1].number == 3
        assert after[-1].is_current
        assert [g.number for g in after if g.is_current] == [3]


class TestReadGeneration:
    """Tests for single generation lookups."""

    def test_creation_date_unknown_when_link_missing(self, profile_dir: Path) -> None:
        """A missing link has no creation date."""
        generation = ProfileStore(profile_dir=profile_dir).read_generation(9)

        assert generation.creation_date == UNKNOWN_DATE
        assert generation.display_date == "(unknown)"

    def test_get_generation_missing_raises(self, profile_dir: Path) -> None:
        """get_generation rejects numbers without a link."""
        with pytest.raises(ResourceAccessError, match="does not exist"):
            ProfileStore(profile_dir=profile_dir).get_generation(4)

    def test_get_generation_current(
        self,
        profile_dir: Path,
        make_generation: Callable[..., Path],
        set_current: Callable[..., None],
    ) -> None:
        """get_generation reports whether the generation is current."""
        make_generation(1)
        make_generation(2)
        set_current(2)
        store = ProfileStore(profile_dir=profile_dir)

        assert store.get_generation(2).is_current
        assert not store.get_generation(1).is_current


class TestCurrentGenerationNumber:
    """Tests for ProfileStore.current_generation_number."""

    def test_reads_current(
        self,
        profile_dir: Path,
        make_generation: Callable[..., Path],
        set_current: Callable[..., None],
    ) -> None:
        """The number is parsed from the profile link target."""
        make_generation(12)
        set_current(12)

        assert ProfileStore(profile_dir=profile_dir).current_generation_number() == 12

    def test_absolute_link_target(
        self,
        profile_dir: Path,
        make_generation: Callable[..., Path],
    ) -> None:
        """Absolute link targets are parsed by their basename."""
        link = make_generation(4)
        os.symlink(link, profile_dir / "system")

        assert ProfileStore(profile_dir=profile_dir).current_generation_number() == 4

    def test_missing_link_raises(self, profile_dir: Path) -> None:
        """A missing profile link is a resource access error."""
        with pytest.raises(ResourceAccessError, match="Unable to determine"):
            ProfileStore(profile_dir=profile_dir).current_generation_number()

    def test_foreign_target_raises(self, profile_dir: Path) -> None:
        """A link to something other than a generation is rejected."""
        (profile_dir / "system").symlink_to("/nix/store/abc-nixos-system")

        with pytest.raises(ResourceAccessError, match="not a generation"):
            ProfileStore(profile_dir=profile_dir).current_generation_number()
