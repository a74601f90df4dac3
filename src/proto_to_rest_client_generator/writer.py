"""Filesystem writers for generated client packages."""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path

_GENERATED_RUFF_IGNORE_CODES: tuple[str, ...] = (
    "D100",
    "D101",
    "D102",
    "D103",
    "D104",
    "D205",
    "D301",
    "D415",
    "E501",
)


class WriteError(RuntimeError):
    """Raised when output files cannot be written."""


def create_output_layout(output_dir: Path, *, package_name: str) -> Path:
    """Create the output directory and the generated package directory.

    Args:
        output_dir (Path): Root output directory to create.
        package_name (str): Name of the generated Python package.

    Returns:
        Path: Path to the created package directory.
    """
    if output_dir.exists():
        raise WriteError(f"Output directory already exists: {output_dir}")

    package_dir = output_dir / package_name
    try:
        package_dir.mkdir(parents=True, exist_ok=False)
    except OSError as exc:
        raise WriteError(f"Failed to create {package_dir}: {exc}") from exc
    return package_dir


def write_module(*, package_dir: Path, module_name: str, source: str) -> Path:
    """Write one generated module and return its path."""
    path = package_dir / f"{module_name}.py"
    _write_file(path, source)
    return path


def format_generated_tree(*, package_dir: Path) -> None:
    """Run Ruff auto-fixes and formatter against generated files.

    Args:
        package_dir (Path): Generated package directory to format.
    """
    _run_ruff(package_dir=package_dir, args=("format", str(package_dir)))
    _run_ruff(
        package_dir=package_dir,
        args=(
            "check",
            "--fix",
            "--ignore",
            ",".join(_GENERATED_RUFF_IGNORE_CODES),
            str(package_dir),
        ),
    )
    _run_ruff(package_dir=package_dir, args=("format", str(package_dir)))


def _run_ruff(*, package_dir: Path, args: tuple[str, ...]) -> None:
    command = [sys.executable, "-m", "ruff", *args]
    command_desc = " ".join(args)
    try:
        subprocess.run(
            command,
            check=True,
            capture_output=True,
            text=True,
        )
    except OSError as exc:
        raise WriteError(f"Failed to execute ruff {command_desc} for {package_dir}: {exc}") from exc
    except subprocess.CalledProcessError as exc:
        error_text = exc.stderr.strip() or exc.stdout.strip() or str(exc)
        raise WriteError(f"ruff {command_desc} failed for {package_dir}: {error_text}") from exc


def _write_file(path: Path, content: str) -> None:
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise WriteError(f"Failed to write file {path}: {exc}") from exc
