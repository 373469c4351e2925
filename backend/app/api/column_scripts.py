"""Column script registry endpoint."""

from typing import List

from fastapi import APIRouter

from ..column_scripts import list_column_scripts
from ..schemas.cell import ColumnScriptResponse, RequiredColumn

router = APIRouter(prefix="/api/column-scripts", tags=["column-scripts"])


@router.get("", response_model=List[ColumnScriptResponse])
def list_scripts():
    """Scripts a column can be populated with, and the columns each one reads."""
    return [
        ColumnScriptResponse(
            id=script.id,
            title=script.title,
            description=script.description,
            required_columns=[
                RequiredColumn(content=content, description=description)
                for content, description in script.required_columns
            ],
        )
        for script in list_column_scripts()
    ]
