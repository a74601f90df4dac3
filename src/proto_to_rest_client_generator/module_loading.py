"""Helpers for dynamically loading generated Python packages."""

from __future__ import annotations

import importlib
import importlib.util
import sys
from pathlib import Path
from types import ModuleType


def load_package_from_path(*, package_name: str, package_dir: Path) -> ModuleType:
    """Load a generated package from disk and register it in ``sys.modules``.

    Submodules are importable afterwards as ``<package_name>.<module>``, so
    relative imports between generated modules resolve.

    Args:
        package_name (str): Temporary import name for the package.
        package_dir (Path): Directory holding the package ``__init__.py``.

    Returns:
        ModuleType: Imported package object.
    """
    spec = importlib.util.spec_from_file_location(
        package_name,
        package_dir / "__init__.py",
        submodule_search_locations=[str(package_dir)],
    )
    if spec is None or spec.loader is None:
        raise RuntimeError(f"Unable to import package from: {package_dir}")

    package = importlib.util.module_from_spec(spec)
    sys.modules[package_name] = package
    try:
        spec.loader.exec_module(package)
    except Exception:
        unload_package(package_name)
        raise
    return package


def load_submodule(*, package_name: str, module_name: str) -> ModuleType:
    """Import ``module_name`` from a package loaded with :func:`load_package_from_path`."""
    return importlib.import_module(f"{package_name}.{module_name}")


def unload_package(package_name: str) -> None:
    """Remove a loaded package and its submodules from ``sys.modules``."""
    prefix = f"{package_name}."
    for name in [name for name in sys.modules if name == package_name or name.startswith(prefix)]:
        sys.modules.pop(name, None)
