"""Registry of deterministic column scripts.

A column script takes an input value plus the full row context
(``{normalized heading: value}``) and returns the cell's new value.
Scripts are pure and thread-safe; bulk workers call them concurrently.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from . import management_detection, management_labels


@dataclass(frozen=True)
class ColumnScript:
    id: str
    title: str
    description: str
    # (column heading, description) pairs the script reads its input from
    required_columns: Tuple[Tuple[str, str], ...]
    execute: Callable[[str, Dict[str, str]], str]


def _from_module(module) -> ColumnScript:
    return ColumnScript(
        id=module.SCRIPT_ID,
        title=module.TITLE,
        description=module.DESCRIPTION,
        required_columns=module.REQUIRED_COLUMNS,
        execute=module.execute,
    )


COLUMN_SCRIPTS: Dict[str, ColumnScript] = {
    script.id: script
    for script in (
        _from_module(management_detection),
        _from_module(management_labels),
    )
}


def get_column_script(script_id: str) -> Optional[ColumnScript]:
    """Look up a script by its stable id."""
    return COLUMN_SCRIPTS.get(script_id)


def list_column_scripts() -> List[ColumnScript]:
    return list(COLUMN_SCRIPTS.values())


__all__ = ["ColumnScript", "COLUMN_SCRIPTS", "get_column_script", "list_column_scripts"]
