"""Schema descriptor consumed alongside the engine.

Used upstream to compose generation prompts. The engine itself only
consults it to log when a fallback references a table it does not know;
backend errors remain the source of truth for existence.
"""
import json
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict


# Prompt budget for the schema section
PROMPT_SCHEMA_MAX_CHARS = 2000


class ColumnDescriptor(BaseModel):
    name: str = Field(..., min_length=1)
    type: str = Field(..., description="Declared type, e.g. 'character varying'")
    nullable: bool = True
    default: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class TableDescriptor(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    columns: list[ColumnDescriptor] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class SchemaDescriptor(BaseModel):
    """Mapping from table name to its column descriptors."""
    tables: dict[str, TableDescriptor] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    def has_table(self, table: str) -> bool:
        return table.lower() in {name.lower() for name in self.tables}

    def has_column(self, table: str, column: str) -> bool:
        for name, descriptor in self.tables.items():
            if name.lower() == table.lower():
                return any(c.name.lower() == column.lower() for c in descriptor.columns)
        return False

    def to_prompt_text(self, max_chars: int = PROMPT_SCHEMA_MAX_CHARS) -> str:
        """Render the schema as indented JSON, truncated for prompt use."""
        text = json.dumps(
            {name: t.model_dump(exclude={"name"}) for name, t in self.tables.items()},
            indent=2
        )
        if len(text) > max_chars:
            text = text[:max_chars] + "\n... (truncated)"
        return text
