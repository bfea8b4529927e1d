"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules. Profiles are
faked with real symlinks in a temporary directory, laid out the way
nix-env lays out /nix/var/nix/profiles.
"""

import json
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from nixgen.models.generation import Generation

MakeGeneration = Callable[..., Path]


@pytest.fixture
def store_dir(tmp_path: Path) -> Path:
    """Directory standing in for /nix/store."""
    path = tmp_path / "store"
    path.mkdir()
    return path


@pytest.fixture
def profile_dir(tmp_path: Path) -> Path:
    """Directory standing in for /nix/var/nix/profiles."""
    path = tmp_path / "profiles"
    path.mkdir()
    return path


@pytest.fixture
def make_closure(store_dir: Path) -> Callable[..., Path]:
    """Factory creating a fake system closure in the store."""

    def _make(
        name: str,
        *,
        version: str | None = "24.05.20240601.abcdef",
        description: str | None = None,
        kernel: str | None = "6.6.32",
        specialisations: tuple[str, ...] = (),
        default_specialisation: str | None = None,
    ) -> Path:
        closure = store_dir / f"{name}-nixos-system"
        (closure / "bin").mkdir(parents=True)
        (closure / "bin" / "switch-to-configuration").write_text("#!/bin/sh\n")

        if version is not None:
            manifest: dict[str, str] = {
                "nixosVersion": version,
                "nixpkgsRevision": "abcdef0123",
            }
            if description is not None:
                manifest["description"] = description
            (closure / "nixos-version.json").write_text(json.dumps(manifest))

        if kernel is not None:
            (closure / "kernel-modules" / "lib" / "modules" / kernel).mkdir(parents=True)

        for specialisation in specialisations:
            script_dir = closure / "specialisation" / specialisation / "bin"
            script_dir.mkdir(parents=True)
            (script_dir / "switch-to-configuration").write_text("#!/bin/sh\n")

        if default_specialisation is not None:
            settings_dir = closure / "etc" / "nixos-cli"
            settings_dir.mkdir(parents=True)
            (settings_dir / "config.toml").write_text(
                f'[apply]\nspecialisation = "{default_specialisation}"\n'
            )

        return closure

    return _make


@pytest.fixture
def make_generation(profile_dir: Path, make_closure: Callable[..., Path]) -> MakeGeneration:
    """Factory adding a generation link to the fake profile."""

    def _make(number: int, *, profile: str = "system", **closure_kwargs: object) -> Path:
        closure = make_closure(f"{profile}-{number}", **closure_kwargs)
        link = profile_dir / f"{profile}-{number}-link"
        link.symlink_to(closure)
        return link

    return _make


@pytest.fixture
def set_current(profile_dir: Path) -> Callable[..., None]:
    """Point the fake profile link at a generation, like nix-env does."""

    def _set(number: int, *, profile: str = "system") -> None:
        link = profile_dir / profile
        if link.is_symlink():
            link.unlink()
        link.symlink_to(f"{profile}-{number}-link")

    return _set


@pytest.fixture
def now() -> datetime:
    """Fixed reference time."""
    return datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def make_generations(now: datetime) -> Callable[..., list[Generation]]:
    """Factory for in-memory generation lists.

    Generation ``n`` is created ``(count - n)`` days before ``now``.
    """

    def _make(count: int, current: int | None = None) -> list[Generation]:
        current = count if current is None else current
        return [
            Generation(
                number=n,
                creation_date=now - timedelta(days=count - n),
                is_current=n == current,
            )
            for n in range(1, count + 1)
        ]

    return _make
