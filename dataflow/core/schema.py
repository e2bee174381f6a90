"""
Typed rows read from the entity store.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping


@dataclass
class EntityRow:
    id: int
    data: Dict[str, Any] = field(default_factory=dict)
    created_date: str = None
    updated_date: str = None
    created_by: str = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "EntityRow":
        """Build from a store row whose ``data`` column holds JSON text."""
        data = row["data"]
        if isinstance(data, (str, bytes)):
            data = json.loads(data) if data else {}
        return cls(
            id=row["id"],
            data=data or {},
            created_date=row["created_date"],
            updated_date=row["updated_date"],
            created_by=row["created_by"],
        )
