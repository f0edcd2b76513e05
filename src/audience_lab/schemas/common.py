"""Shared pydantic base for wire-format models.

Python attributes are snake_case; the JSON the models see and produce uses
camelCase keys (``segmentName``, ``followerCount``).  Both spellings are
accepted on input.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base model serialised with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Dump with camelCase keys, JSON-compatible values."""
        return self.model_dump(mode="json", by_alias=True)
