import httpx
import pytest

from solservice.directory import (
    HttpTechnicianDirectory,
    StaticTechnicianDirectory,
    Technician,
    create_directory,
)


def _http_directory(transport: httpx.MockTransport) -> HttpTechnicianDirectory:
    client = httpx.AsyncClient(transport=transport, base_url="http://directory.test")
    return HttpTechnicianDirectory(client)


class TestStaticDirectory:
    async def test_get_many_skips_unknown(self) -> None:
        directory = StaticTechnicianDirectory(
            [Technician(id="t1", name="Kari"), Technician(id="t2", name="Ola")]
        )

        found = await directory.get_many(["t1", "missing", "t1"])

        assert list(found) == ["t1"]
        assert found["t1"].name == "Kari"


class TestHttpDirectory:
    async def test_maps_employee_payload(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            return httpx.Response(
                200,
                json={
                    "id": "t1",
                    "name": "Kari Nordmann",
                    "certifications": ["high-voltage"],
                    "isAvailable": False,
                },
            )

        directory = _http_directory(httpx.MockTransport(handler))
        technician = await directory.get("t1")
        await directory.aclose()

        assert seen == ["/employees/t1"]
        assert technician == Technician(
            id="t1",
            name="Kari Nordmann",
            certifications=("high-voltage",),
            is_available=False,
        )

    async def test_not_found_is_none(self) -> None:
        directory = _http_directory(
            httpx.MockTransport(lambda request: httpx.Response(404))
        )

        assert await directory.get("ghost") is None

    async def test_server_error_propagates(self) -> None:
        directory = _http_directory(
            httpx.MockTransport(lambda request: httpx.Response(503))
        )

        with pytest.raises(httpx.HTTPStatusError):
            await directory.get("t1")


class TestCreateDirectory:
    def test_without_url_is_static(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("SOLSERVICE_DIRECTORY_URL", raising=False)

        assert isinstance(create_directory(), StaticTechnicianDirectory)

    async def test_with_url_is_http(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SOLSERVICE_DIRECTORY_URL", "http://directory.test")

        directory = create_directory()
        await directory.aclose()

        assert isinstance(directory, HttpTechnicianDirectory)
        assert directory._client.base_url.host == "directory.test"
        assert directory._client.timeout == httpx.Timeout(10.0)
