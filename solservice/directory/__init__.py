import os
from collections.abc import AsyncGenerator

from solservice.directory.http import HttpTechnicianDirectory
from solservice.directory.interface import Technician, TechnicianDirectory
from solservice.directory.static import StaticTechnicianDirectory

__all__ = [
    "HttpTechnicianDirectory",
    "StaticTechnicianDirectory",
    "Technician",
    "TechnicianDirectory",
    "create_directory",
    "get_directory",
]


def create_directory() -> TechnicianDirectory:
    """Directory client for ``SOLSERVICE_DIRECTORY_URL``, or an empty one."""
    base_url = os.environ.get("SOLSERVICE_DIRECTORY_URL")
    if not base_url:
        return StaticTechnicianDirectory()
    return HttpTechnicianDirectory.create(base_url)


async def get_directory() -> AsyncGenerator[TechnicianDirectory]:
    directory = create_directory()
    try:
        yield directory
    finally:
        await directory.aclose()
