from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Technician:
    id: str
    name: str
    certifications: tuple[str, ...] = field(default_factory=tuple)
    is_available: bool = True


class TechnicianDirectory(ABC):
    """Employee directory owned by another system; we only read from it."""

    @abstractmethod
    async def get(self, technician_id: str) -> Technician | None: ...

    async def get_many(self, technician_ids: Iterable[str]) -> dict[str, Technician]:
        found: dict[str, Technician] = {}
        for technician_id in dict.fromkeys(technician_ids):
            technician = await self.get(technician_id)
            if technician is not None:
                found[technician_id] = technician
        return found

    async def aclose(self) -> None:
        return None
