"""Resolve the configured work function from a `module:attribute` import path."""
from __future__ import annotations

import importlib
import inspect

from reprocessor.app.domain.errors import WorkFunctionImportError
from reprocessor.app.ports.work_function import WorkFunction


def load_work_function(path: str) -> WorkFunction:
    module_name, sep, attr_path = path.strip().partition(":")
    if not module_name or not sep or not attr_path:
        raise WorkFunctionImportError(f"work function path must look like 'package.module:function', got {path!r}")

    try:
        target: object = importlib.import_module(module_name)
    except ImportError as exc:
        raise WorkFunctionImportError(f"cannot import module {module_name!r}: {exc}") from exc

    for attr in attr_path.split("."):
        try:
            target = getattr(target, attr)
        except AttributeError as exc:
            raise WorkFunctionImportError(f"{module_name!r} has no attribute {attr_path!r}") from exc

    if not callable(target):
        raise WorkFunctionImportError(f"{path!r} is not callable")
    if not (inspect.iscoroutinefunction(target) or inspect.iscoroutinefunction(getattr(target, "__call__", None))):
        raise WorkFunctionImportError(f"{path!r} must be an async function")
    return target  # type: ignore[return-value]
