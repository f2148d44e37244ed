from typing import Any, Self

import httpx

from solservice.directory.interface import Technician, TechnicianDirectory


class HttpTechnicianDirectory(TechnicianDirectory):
    """Reads technicians from ``GET {base_url}/employees/{id}``."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @classmethod
    def create(cls, base_url: str, timeout: float = 10.0) -> Self:
        return cls(httpx.AsyncClient(base_url=base_url, timeout=timeout))

    async def get(self, technician_id: str) -> Technician | None:
        response = await self._client.get(f"/employees/{technician_id}")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return self._to_technician(technician_id, response.json())

    @staticmethod
    def _to_technician(technician_id: str, payload: dict[str, Any]) -> Technician:
        return Technician(
            id=str(payload.get("id", technician_id)),
            name=payload.get("name") or technician_id,
            certifications=tuple(payload.get("certifications") or ()),
            is_available=bool(payload.get("isAvailable", True)),
        )

    async def aclose(self) -> None:
        await self._client.aclose()
