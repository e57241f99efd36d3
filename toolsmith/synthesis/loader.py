"""
Generated-code loader — extract, compile and hot-load capability modules.

These are the mechanical halves of the synthesis pipeline:

- strip_code_fences(): turn a model reply into raw Python source
- compile_source(): byte-compile the persisted file, refusing anything that
  does not parse
- load_capability(): import the file under a fresh module name, find its one
  capability class, instantiate it and check it against the contract

Loading executes the generated module in this process. There is no sandbox;
synthesis as a whole is gated by TOOLSMITH_SYNTHESIS_ENABLED.
"""

from __future__ import annotations

import asyncio
import importlib.util
import inspect
import itertools
import py_compile
import re
import sys
from pathlib import Path
from typing import Any, Optional

import structlog

from toolsmith.errors import SynthesisStepError
from toolsmith.tools.base import conformance_errors

logger = structlog.get_logger(__name__)

_FENCED_BLOCK = re.compile(r"```(?:python3?|py)?[ \t]*\r?\n(.*?)```", re.DOTALL | re.IGNORECASE)
_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_]")

# Each load gets its own module name so a reloaded tool never reuses a stale module.
_load_counter = itertools.count(1)


def sanitize_tool_name(name: str) -> str:
    """File-system safe form of a capability name."""
    return _UNSAFE_NAME_CHARS.sub("_", name or "")


def strip_code_fences(text: Optional[str]) -> str:
    """Return the source inside the first fenced block, or the text without stray fences."""
    if not text:
        return ""
    match = _FENCED_BLOCK.search(text)
    if match:
        source = match.group(1)
    else:
        lines = text.strip().splitlines()
        if lines and lines[0].lstrip().startswith("```"):
            lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        source = "\n".join(lines)
    source = source.strip()
    return source + "\n" if source else ""


def compile_source(path: Path) -> None:
    """Byte-compile ``path``. Raises SynthesisStepError("compile") on syntax errors."""
    try:
        py_compile.compile(str(path), doraise=True)
    except py_compile.PyCompileError as e:
        raise SynthesisStepError("compile", f"Generated code does not compile: {e.msg}") from e


def _capability_classes(module: Any) -> list[type]:
    return [
        obj
        for obj in vars(module).values()
        if inspect.isclass(obj)
        and obj.__module__ == module.__name__
        and callable(getattr(obj, "execute", None))
    ]


def load_capability(
    path: Path,
    expected_name: str,
    expected_schema: Optional[dict[str, Any]] = None,
) -> Any:
    """
    Import a generated module and return a validated capability instance.

    The module must define exactly one class with an ``execute`` method. That
    class is instantiated with no arguments and the instance must declare the
    expected name, a non-empty description and an object JSON Schema (equal
    to ``expected_schema`` when one was requested).

    Raises:
        SynthesisStepError: with step "load" for any failure.
    """
    module_name = f"_toolsmith_generated_{sanitize_tool_name(expected_name)}_{next(_load_counter)}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise SynthesisStepError("load", f"Cannot build an import spec for {path}.")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except asyncio.CancelledError:
        sys.modules.pop(module_name, None)
        raise
    except BaseException as e:
        sys.modules.pop(module_name, None)
        raise SynthesisStepError(
            "load", f"Importing generated module failed: {type(e).__name__}: {e}"
        ) from e

    classes = _capability_classes(module)
    if len(classes) != 1:
        sys.modules.pop(module_name, None)
        raise SynthesisStepError(
            "load",
            f"Generated module must define exactly one class with an execute method, "
            f"found {len(classes)}.",
        )

    cls = classes[0]
    try:
        instance = cls()
    except asyncio.CancelledError:
        sys.modules.pop(module_name, None)
        raise
    except BaseException as e:
        sys.modules.pop(module_name, None)
        raise SynthesisStepError(
            "load", f"Could not instantiate {cls.__name__} with no arguments: {e}"
        ) from e

    problems = conformance_errors(instance)
    if not problems and instance.name != expected_name:
        problems.append(f"declared name '{instance.name}' does not match '{expected_name}'")
    if not problems and expected_schema is not None and instance.parameter_schema != expected_schema:
        problems.append("parameter_schema does not match the requested schema")
    if problems:
        sys.modules.pop(module_name, None)
        raise SynthesisStepError("load", "Generated tool failed validation: " + "; ".join(problems))

    try:
        instance.origin = "generated"
    except AttributeError:
        logger.debug("synthesis_loader.origin_not_settable", name=expected_name)

    logger.info("synthesis_loader.loaded", name=expected_name, module=module_name, cls=cls.__name__)
    return instance


def unload_capability(tool: object) -> None:
    """Drop the ``sys.modules`` entry of a generated capability being replaced."""
    module_name = type(tool).__module__
    if module_name.startswith("_toolsmith_generated_"):
        sys.modules.pop(module_name, None)
        logger.debug("synthesis_loader.unloaded", module=module_name)
