"""
Capability Synthesis Pipeline — how Toolsmith grows new tools at runtime.

When the model calls request_tool_creation, the request flows through seven
steps, each of which can fail on its own:

    specify   build a ToolSpecification from the request
    generate  ask the LLM for source code in an isolated single-turn request
    extract   strip code fences from the reply
    persist   write <generated_dir>/<sanitized_name>.py
    compile   byte-compile the file
    load      import it, instantiate its one class, check it against the contract
    register  register (create) or replace (update) it in the live registry,
              then regenerate the system prompt

The first failure stops the pipeline and is reported as a ToolCreationResult
with success=False and the name of the failed step. Nothing raises past
synthesize(). If a step after persist fails, the previous source file is
restored (or the new one removed), so the files on disk always match what the
registry holds.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Sequence

import structlog

from toolsmith.errors import LLMServiceError, SynthesisStepError, ToolsmithError
from toolsmith.prompts import CODEGEN_USER_MESSAGE, generate_codegen_prompt
from toolsmith.synthesis.loader import (
    compile_source,
    load_capability,
    sanitize_tool_name,
    strip_code_fences,
    unload_capability,
)
from toolsmith.tools.base import is_json_schema_object
from toolsmith.tools.registry import ToolRegistry
from toolsmith.types import Message

logger = structlog.get_logger(__name__)

VALID_OPERATIONS = ("create", "update")

PIPELINE_STEPS = ("specify", "generate", "extract", "persist", "compile", "load", "register")

_DEFAULT_OUTPUT_DESCRIPTION = (
    "A JSON object with the result of the tool, or {\"error\": \"message\"} on failure."
)


@dataclass
class ToolSpecification:
    """The contract handed to code generation."""

    tool_name: str
    tool_description: str
    input_parameters_schema: Optional[dict[str, Any]] = None
    output_description: str = _DEFAULT_OUTPUT_DESCRIPTION
    update_description: Optional[str] = None
    preserve_functionality: list[str] = field(default_factory=list)
    previous_description: Optional[str] = None
    previous_source: Optional[str] = None

    @property
    def is_update(self) -> bool:
        return self.update_description is not None


@dataclass
class ToolCreationResult:
    """Outcome of one synthesis request, as reported back to the model."""

    success: bool
    tool_name: Optional[str] = None
    tool_code: Optional[str] = None
    error: Optional[str] = None
    is_update: bool = False
    failed_step: Optional[str] = None
    source_path: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success, "isUpdate": self.is_update}
        if self.tool_name is not None:
            data["toolName"] = self.tool_name
        if self.tool_code is not None:
            data["toolCode"] = self.tool_code
        if self.error is not None:
            data["error"] = self.error
        if self.failed_step is not None:
            data["failedStep"] = self.failed_step
        if self.source_path is not None:
            data["sourcePath"] = self.source_path
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


class CapabilitySynthesizer:
    """
    Turns a natural-language tool request into a registered capability.

    Owned by one agent session: it mutates that session's registry and
    regenerates that session's system prompt.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        llm: Any,
        generated_dir: Path,
        conversation: Optional[Any] = None,
        codegen_max_tokens: Optional[int] = None,
    ):
        self._registry = registry
        self._llm = llm
        self._generated_dir = Path(generated_dir)
        self._conversation = conversation
        self._codegen_max_tokens = codegen_max_tokens

        # Telemetry
        self._total_requests = 0
        self._total_succeeded = 0
        self._failures_by_step: dict[str, int] = {}

    @property
    def generated_dir(self) -> Path:
        return self._generated_dir

    def source_path_for(self, tool_name: str) -> Path:
        return self._generated_dir / f"{sanitize_tool_name(tool_name)}.py"

    async def synthesize(
        self,
        tool_name: str,
        requirements: str,
        operation: str = "create",
        update_requirements: Optional[str] = None,
        preserve_functionality: Optional[Sequence[str]] = None,
        input_parameters_schema: Optional[dict[str, Any]] = None,
        output_description: Optional[str] = None,
    ) -> ToolCreationResult:
        """Run the whole pipeline. Always returns a result, never raises."""
        self._total_requests += 1
        start_time = time.monotonic()
        is_update = operation == "update"
        step = "specify"
        source_path: Optional[Path] = None
        previous_source: Optional[str] = None
        persisted = False

        logger.info("synthesis.started", tool=tool_name, operation=operation)

        try:
            spec = self.build_specification(
                tool_name,
                requirements,
                operation,
                update_requirements=update_requirements,
                preserve_functionality=preserve_functionality,
                input_parameters_schema=input_parameters_schema,
                output_description=output_description,
            )

            step = "generate"
            reply = await self._generate(spec)

            step = "extract"
            source = strip_code_fences(reply)
            if not source.strip():
                raise SynthesisStepError("extract", "The code generation reply contained no code.")

            step = "persist"
            source_path = self.source_path_for(spec.tool_name)
            previous_source = self._read_existing(source_path)
            self._persist(source_path, source)
            persisted = True

            step = "compile"
            compile_source(source_path)

            step = "load"
            tool = load_capability(
                source_path, spec.tool_name, expected_schema=spec.input_parameters_schema
            )

            step = "register"
            self._register(spec, tool, is_update)
        except Exception as e:
            failed_step = e.step if isinstance(e, SynthesisStepError) else step
            if not isinstance(e, ToolsmithError):
                logger.error(
                    "synthesis.unexpected_error",
                    tool=tool_name,
                    step=failed_step,
                    error_type=type(e).__name__,
                    error=str(e),
                )
            if persisted and source_path is not None:
                self._rollback(source_path, previous_source)
            self._failures_by_step[failed_step] = self._failures_by_step.get(failed_step, 0) + 1
            logger.warning(
                "synthesis.failed",
                tool=tool_name,
                operation=operation,
                step=failed_step,
                error=str(e),
            )
            return ToolCreationResult(
                success=False,
                tool_name=tool_name,
                error=str(e),
                is_update=is_update,
                failed_step=failed_step,
            )

        self._total_succeeded += 1
        logger.info(
            "synthesis.completed",
            tool=spec.tool_name,
            operation=operation,
            path=str(source_path),
            elapsed_seconds=round(time.monotonic() - start_time, 2),
        )
        return ToolCreationResult(
            success=True,
            tool_name=spec.tool_name,
            tool_code=source,
            is_update=is_update,
            source_path=str(source_path),
        )

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def build_specification(
        self,
        tool_name: str,
        requirements: str,
        operation: str = "create",
        update_requirements: Optional[str] = None,
        preserve_functionality: Optional[Sequence[str]] = None,
        input_parameters_schema: Optional[dict[str, Any]] = None,
        output_description: Optional[str] = None,
    ) -> ToolSpecification:
        """Step 1: validate the request and build a ToolSpecification."""
        if operation not in VALID_OPERATIONS:
            raise SynthesisStepError(
                "specify", f"Unknown operation '{operation}'. Use 'create' or 'update'."
            )
        name = (tool_name or "").strip()
        if not name:
            raise SynthesisStepError("specify", "tool_name must be a non-empty string.")
        if input_parameters_schema is not None and not is_json_schema_object(input_parameters_schema):
            raise SynthesisStepError(
                "specify", "input_parameters_schema must be a JSON Schema with type 'object'."
            )
        file_stem = sanitize_tool_name(name)
        for other in self._registry.names():
            if other != name and sanitize_tool_name(other) == file_stem:
                raise SynthesisStepError(
                    "specify",
                    f"Tool name '{name}' collides with existing tool '{other}' "
                    f"(both would be saved as {file_stem}.py).",
                )

        requirements = (requirements or "").strip()
        spec = ToolSpecification(
            tool_name=name,
            tool_description=requirements,
            input_parameters_schema=input_parameters_schema,
            output_description=output_description or _DEFAULT_OUTPUT_DESCRIPTION,
            preserve_functionality=[str(item) for item in preserve_functionality or ()],
        )

        if operation == "update":
            existing = self._registry.get(name)
            if existing is None:
                raise SynthesisStepError(
                    "specify", f"Tool '{name}' not found. Cannot update a non-existent tool."
                )
            change = (update_requirements or requirements or "").strip()
            if not change:
                raise SynthesisStepError("specify", "An update needs update_requirements.")
            spec.update_description = change
            spec.previous_description = existing.description
            spec.previous_source = self._read_existing(self.source_path_for(name))
            if not spec.tool_description:
                spec.tool_description = existing.description
        elif not requirements:
            raise SynthesisStepError("specify", "tool_requirements_free_text must not be empty.")

        return spec

    async def _generate(self, spec: ToolSpecification) -> str:
        """Step 2: isolated single-turn code generation request, no tools offered."""
        messages = [
            Message.system(generate_codegen_prompt(spec)),
            Message.user(CODEGEN_USER_MESSAGE),
        ]
        try:
            reply = await self._llm.chat(messages, tools=None, max_tokens=self._codegen_max_tokens)
        except LLMServiceError as e:
            raise SynthesisStepError("generate", f"Code generation request failed: {e}") from e
        if reply is None or not reply.content:
            raise SynthesisStepError("generate", "LLM did not return code content for tool generation.")
        return reply.content

    def _persist(self, path: Path, source: str) -> None:
        """Step 4: write the source atomically (temp file, then replace)."""
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            temp_file = path.parent / f".{path.stem}.{int(time.time() * 1000)}.tmp"
            temp_file.write_text(source, encoding="utf-8")
            temp_file.replace(path)
        except OSError as e:
            raise SynthesisStepError("persist", f"Could not write generated source: {e}") from e
        logger.info("synthesis.persisted", path=str(path), source=source)

    def _register(self, spec: ToolSpecification, tool: Any, is_update: bool) -> None:
        """Step 7: put the tool in the registry and refresh the system prompt."""
        previous = self._registry.get(spec.tool_name)
        try:
            if is_update:
                self._registry.update(spec.tool_name, tool)
            else:
                self._registry.register(tool)
        except ToolsmithError as e:
            raise SynthesisStepError("register", str(e)) from e
        if previous is not None and previous is not tool:
            unload_capability(previous)

        if self._conversation is not None:
            self._conversation.update_system_prompt(self._registry.get_all())

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _read_existing(path: Path) -> Optional[str]:
        try:
            return path.read_text(encoding="utf-8") if path.exists() else None
        except OSError as e:
            logger.warning("synthesis.read_existing_failed", path=str(path), error=str(e))
            return None

    @staticmethod
    def _rollback(path: Path, previous_source: Optional[str]) -> None:
        """Restore the file as it was before persist."""
        try:
            if previous_source is None:
                path.unlink(missing_ok=True)
            else:
                path.write_text(previous_source, encoding="utf-8")
        except OSError as e:
            logger.error("synthesis.rollback_failed", path=str(path), error=str(e))
            return
        logger.info("synthesis.rolled_back", path=str(path), restored=previous_source is not None)

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "total_requests": self._total_requests,
            "total_succeeded": self._total_succeeded,
            "failures_by_step": dict(self._failures_by_step),
        }
