"""
Prompt text for Toolsmith.

Three prompts drive the system:

- the main system prompt, regenerated from the live capability set every time
  the registry changes;
- the code-generation prompt, sent as the system message of an isolated
  single-turn request when a capability is synthesized;
- the intent hint, a transient system message built from an IntentAnalysis
  and shown to the model only for the first dispatch of a turn.

Every function here is a pure function of its arguments. Nothing is cached.
"""

from __future__ import annotations

import json
from datetime import date
from typing import Any, Iterable, Optional

from toolsmith.tools.base import to_api_format

CODEGEN_USER_MESSAGE = "Generate the tool code as per the system prompt."

NO_RESPONSE_MESSAGE = "Sorry, I didn't get a response from the model. Please try again."

CYCLE_BUDGET_APOLOGY = (
    "I apologize, but I seem to be stuck in a loop. Could you try rephrasing your request?"
)


def format_capabilities(capabilities: Iterable[Any]) -> str:
    """Render capability declarations as pretty-printed function-calling JSON."""
    return json.dumps([to_api_format(c) for c in capabilities], indent=2, ensure_ascii=False)


def generate_system_prompt(capabilities: Iterable[Any], today: Optional[date] = None) -> str:
    """Build the main system prompt from the current capability set."""
    capabilities = list(capabilities)
    today = today or date.today()
    if capabilities:
        tools_section = (
            "Here are the tools currently available:\n" + format_capabilities(capabilities)
        )
    else:
        tools_section = (
            "Note that no tools are currently available, but you can request the "
            "creation of new tools if needed."
        )

    return f"""You are a highly capable and resourceful AI assistant. Your primary goal is to assist the user effectively and accurately.

Today's date is {today.isoformat()}.

{tools_section}

Tool Interaction Protocol:

1.  **Assessment:** Carefully analyze the user's request.

2.  **Capability Check & Decision Making:**
    a.  **Pure Knowledge vs. Action:**
        i. If the request is purely for information, or can be fully and satisfactorily addressed using your general knowledge, answer directly.
        ii. If the request involves an action (looking up dynamic external information, converting or processing data, performing a complex calculation) or requires a specialized function, evaluate tool use (step 2.b). Prefer a tool over a manual workaround when a tool would better fulfill the action.
    b.  **Tool Selection/Creation/Update Strategy:**
        1.  **Existing Tool Match:** If an existing tool can directly handle the request, call it (step 3).
        2.  **Existing Tool Update Opportunity:** If an existing tool is similar to what is needed but needs enhancement, update it by calling 'request_tool_creation' with operation="update".
        3.  **New Tool Creation Need:** If no existing tool matches and a tool could reasonably be created for the task, you MUST call 'request_tool_creation' with operation="create", inferring tool_name and tool_requirements_free_text from the request.
        4.  **Unable to Assist:** If no tool is suitable and none can reasonably be created, explain this to the user.

3.  **Tool Invocation:** Call the most appropriate tool with arguments that conform to its parameters schema.

4.  **Requesting Tool Creation or Updates:**
    *   For new tools: call 'request_tool_creation' with operation="create", a descriptive snake_case tool_name, and detailed tool_requirements_free_text.
    *   For updating tools: call 'request_tool_creation' with operation="update", the existing tool_name, and update_requirements describing what to add. List behaviours that must keep working in preserve_functionality.
    *   Consider asking the user to confirm first if the operation was not explicitly requested.

5.  **Receiving Tool Results:** After any tool call you receive the tool's output (usually JSON). Analyze it to decide the next step. If a tool returns an error, correct the arguments, try another tool, or explain the failure. After a successful 'request_tool_creation' the new tool is immediately available and you can call it to finish the user's request.

When to update vs. create:

1. Update an existing tool when:
   * The request is for functionality closely related to an existing tool
   * The new functionality is a natural extension of what the tool already does

2. Create a new tool when:
   * The functionality is conceptually different from any existing tool
   * Combining it with an existing tool would make that tool too complex
   * The user explicitly requests a separate tool

Example of tool creation:
User: "I need to convert between currencies"
Assistant: "I can create a currency converter tool for you. Would you like me to do that?"

Example of tool update:
User: "Can you make the weather tool show forecasts for multiple days?"
Assistant: "I can update the existing weather tool to include multi-day forecasts. Would you like me to do that?"
"""


_CAPABILITY_TEMPLATE = '''import json

from toolsmith.tools.base import Capability, error_result, parse_arguments


class ExampleTool(Capability):
    name = "example_tool"
    description = "What the tool does and when to use it."
    parameter_schema = {
        "type": "object",
        "properties": {"text": {"type": "string", "description": "Input text."}},
        "required": ["text"],
    }

    async def execute(self, args_json: str) -> str:
        try:
            args = parse_arguments(args_json)
        except ValueError as e:
            return error_result(str(e))
        try:
            return json.dumps({"result": args["text"].upper()})
        except Exception as e:
            return error_result(f"Execution failed: {e}")
'''


def generate_codegen_prompt(spec: Any) -> str:
    """
    Build the system prompt for the isolated code-generation request.

    ``spec`` is a ToolSpecification. When it describes an update, the prompt
    carries the change request, the behaviours to preserve and (when known)
    the current source of the capability.
    """
    if spec.input_parameters_schema:
        schema_section = (
            "Input Parameters JSON Schema (use exactly this as parameter_schema):\n"
            f"```json\n{json.dumps(spec.input_parameters_schema, indent=2)}\n```"
        )
    else:
        schema_section = (
            "Input Parameters JSON Schema: design one from the description. It must be "
            'a JSON Schema object with "type": "object".'
        )

    sections = [
        "You are an expert Python programmer. Your task is to generate the Python source "
        "code for a tool that an AI assistant will load and call at runtime.",
        "The tool must be a single class that subclasses "
        "`toolsmith.tools.base.Capability` and defines:\n"
        "  - name: str (class attribute, exactly the tool name below)\n"
        "  - description: str (class attribute, non-empty)\n"
        "  - parameter_schema: dict (class attribute, JSON Schema with \"type\": \"object\")\n"
        "  - async def execute(self, args_json: str) -> str",
        f"Tool Name: {spec.tool_name}\n"
        f"Tool Description: {spec.tool_description}\n"
        f"{schema_section}\n"
        f"Output Description (what execute should compute and return as a JSON string): "
        f"{spec.output_description}",
    ]

    if spec.is_update:
        update_lines = [
            "This is an UPDATE of an existing tool. Keep the same tool name.",
            f"Requested changes: {spec.update_description}",
        ]
        if spec.previous_description:
            update_lines.append(f"Current description: {spec.previous_description}")
        if spec.preserve_functionality:
            update_lines.append("Behaviour that MUST keep working:")
            update_lines.extend(f"  - {item}" for item in spec.preserve_functionality)
        if spec.previous_source:
            update_lines.append(f"Current source:\n```python\n{spec.previous_source}\n```")
        sections.append("\n".join(update_lines))

    sections.append(
        "Rules:\n"
        "  - Respond with ONLY the Python source of the module. No explanations.\n"
        "  - Define exactly one class with an execute method in the module.\n"
        "  - The class must be constructible with no arguments.\n"
        "  - execute receives the arguments as a JSON string and must parse it itself.\n"
        "  - execute must always return a JSON string. Catch errors in parsing or "
        'execution and return an error object such as {"error": "message"} instead of raising.\n'
        "  - Only use the Python standard library and toolsmith.tools.base."
    )
    sections.append("Example of the expected structure:\n```python\n" + _CAPABILITY_TEMPLATE + "```")
    return "\n\n".join(sections)


def generate_intent_hint(operation: str, tool_name: Optional[str], requirements: Optional[str]) -> str:
    """The transient hint shown to the model when the analyzer suggests synthesis."""
    return (
        f'I\'ve detected that the user may want to {operation} a tool called "{tool_name}". '
        f"Consider asking the user if they want to {operation} this tool to handle their request. "
        f"Requirements: {requirements}. "
        f"You can use the 'request_tool_creation' tool with operation=\"{operation}\" "
        f"to {operation} this tool."
    )
