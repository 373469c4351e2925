"""Generation rules: which path produces a cell's value, and with what input.

A rule is resolved once per batch (or once per single job) and is
read-only afterwards, so concurrent workers share it freely.

    ScriptRule  -- run a registered column script on a derived input value
    PromptRule  -- render a prompt template against the row and call the LLM
"""

import json
import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

from ..column_scripts import get_column_script
from ..exceptions import RuleResolutionError, ScriptNotFoundError
from ..models import GridColumn
from ..repositories.cell_repository import normalize_key

_PLACEHOLDER = re.compile(r"\{\{([^}]+)\}\}")


@dataclass(frozen=True)
class ScriptRule:
    script_id: str
    # Column headings whose row values form the script input, in order
    required_fields: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PromptRule:
    # None when every cell of the batch carries its own prompt
    template: Optional[str]
    use_web_search: bool = False


GenerationRule = Union[ScriptRule, PromptRule]


def render_prompt(template: str, row_data: Dict[str, str]) -> str:
    """Replace ``{{ name }}`` placeholders with values from the row.

    Names match row keys after normalization (case and surrounding
    whitespace ignored). A placeholder with no value, or an empty one,
    stays in the text as written.
    """
    def _substitute(match: "re.Match[str]") -> str:
        value = row_data.get(normalize_key(match.group(1)))
        return value if value else match.group(0)

    return _PLACEHOLDER.sub(_substitute, template)


def _parse_required_fields(column: GridColumn) -> Tuple[str, ...]:
    raw = column.script_required_fields
    if not raw:
        return ()
    try:
        entries = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise RuleResolutionError(
            f"Column {column.id} has invalid script required fields: {e}"
        ) from e
    if not isinstance(entries, list) or not all(
        isinstance(entry, dict) and isinstance(entry.get("field"), str) for entry in entries
    ):
        raise RuleResolutionError(
            f"Column {column.id} has invalid script required fields: "
            "expected a list of {field, description} objects"
        )
    return tuple(entry["field"] for entry in entries)


def resolve_column_rule(
    column: GridColumn,
    prompt_override: Optional[str] = None,
    web_search_override: Optional[bool] = None,
    every_cell_has_input: bool = False,
) -> GenerationRule:
    """Resolve the rule a bulk job applies to every cell of ``column``.

    A column script takes precedence over any prompt. Raises
    RuleResolutionError (or ScriptNotFoundError) when the batch cannot
    run at all.
    """
    if column.script_to_populate:
        if get_column_script(column.script_to_populate) is None:
            raise ScriptNotFoundError(column.script_to_populate)
        return ScriptRule(
            script_id=column.script_to_populate,
            required_fields=_parse_required_fields(column),
        )

    template = prompt_override if prompt_override and prompt_override.strip() else column.ai_prompt
    if not (template and template.strip()):
        if not every_cell_has_input:
            raise RuleResolutionError(
                f"Column {column.id} has neither an AI prompt nor a script to populate it"
            )
        template = None

    use_web_search = column.use_web_search if web_search_override is None else web_search_override
    return PromptRule(template=template, use_web_search=bool(use_web_search))


def resolve_job_rule(input_text: str, script_id: Optional[str], use_web_search: bool) -> GenerationRule:
    """Resolve the rule of a single-cell job from its request fields."""
    if script_id:
        if get_column_script(script_id) is None:
            raise ScriptNotFoundError(script_id)
        return ScriptRule(script_id=script_id)
    return PromptRule(template=input_text, use_web_search=use_web_search)


def script_input_for(
    rule: ScriptRule,
    cell_input: Optional[str],
    row_context: Dict[str, str],
    heading: str,
) -> str:
    """Input value for a script: explicit input, else required fields, else own column."""
    if cell_input:
        return cell_input
    if rule.required_fields:
        return " ".join(row_context.get(normalize_key(field), "") for field in rule.required_fields)
    return row_context.get(normalize_key(heading), "")


def prompt_input_for(rule: PromptRule, cell_input: Optional[str], row_context: Dict[str, str]) -> str:
    """Rendered prompt for one cell: its own prompt if given, else the template."""
    text = cell_input or rule.template
    if not text:
        raise RuleResolutionError("No prompt available for this cell")
    return render_prompt(text, row_context)


def generate(
    rule: GenerationRule,
    cell_input: Optional[str],
    row_context: Dict[str, str],
    heading: str,
    backend,
) -> str:
    """Run ``rule`` for one cell against ``backend`` and return the new value."""
    if isinstance(rule, ScriptRule):
        value = script_input_for(rule, cell_input, row_context, heading)
        return backend.run_script(rule.script_id, value, row_context)
    if isinstance(rule, PromptRule):
        prompt = prompt_input_for(rule, cell_input, row_context)
        return backend.run_prompt(prompt, rule.use_web_search)
    raise TypeError(f"Unknown generation rule: {rule!r}")
