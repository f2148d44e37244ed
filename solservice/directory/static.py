from collections.abc import Iterable

from solservice.directory.interface import Technician, TechnicianDirectory


class StaticTechnicianDirectory(TechnicianDirectory):
    def __init__(self, technicians: Iterable[Technician] = ()) -> None:
        self._technicians = {t.id: t for t in technicians}

    async def get(self, technician_id: str) -> Technician | None:
        return self._technicians.get(technician_id)
