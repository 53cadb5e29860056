"""Load a fiber entry point from a Python script file."""

from __future__ import annotations

import importlib.util
import sys
from pathlib import Path

from fiberio.core.errors import ScriptLoadError
from fiberio.core.logging import get_logger
from fiberio.runtime.requests import EntryPoint

_logger = get_logger("loader")


def load_entry(path: Path, name: str = "main") -> EntryPoint:
    """Import ``path`` as a fresh module and return its ``name`` attribute.

    The script is imported under a private module name so that loading the
    same file twice yields independent module state.

    Raises:
        ScriptLoadError: If the file is missing, fails to import, or has no
            callable ``name``.
    """
    if not path.is_file():
        raise ScriptLoadError(f"script not found: {path}")

    module_name = f"_fiberio_script_{path.stem}_{abs(hash(path.resolve()))}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ScriptLoadError(f"cannot import {path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        sys.modules.pop(module_name, None)
        raise ScriptLoadError(f"error while importing {path}: {e!r}") from e

    entry = getattr(module, name, None)
    if entry is None:
        raise ScriptLoadError(f"{path} defines no entry point named {name!r}")
    if not callable(entry):
        raise ScriptLoadError(f"{path}:{name} is not callable")

    _logger.debug("script_loaded", path=str(path), entry=name)
    return entry
