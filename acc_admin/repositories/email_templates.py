"""Repository for close/email templates (read-only)."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class EmailTemplate:
    id: int
    name: str
    active: bool = True

    @classmethod
    def from_row(cls, row) -> "EmailTemplate":
        return cls(id=row["id"], name=row["name"], active=row["active"])


class EmailTemplateRepository:
    def __init__(self, pool):
        self._pool = pool

    async def get(self, template_id: Optional[int]) -> Optional[EmailTemplate]:
        if template_id is None:
            return None
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM emailtemplate WHERE id = $1", template_id
            )
        return EmailTemplate.from_row(row) if row else None
