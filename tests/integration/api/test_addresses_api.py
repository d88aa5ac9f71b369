"""API tests for the /addresses CRUD and listing endpoints."""

from collections.abc import Callable
from typing import Any

import pytest
import pytest_check
from fastapi import FastAPI
from httpx import AsyncClient

PARIS = {
    "street": "Rue de Rivoli",
    "houseNumber": 99,
    "zipCode": "75001",
    "city": "Paris",
    "country": "France",
}
BERLIN = {
    "street": "Unter den Linden",
    "houseNumber": 1,
    "zipCode": "10117",
    "city": "Berlin",
    "country": "Germany",
}
AMSTERDAM = {
    "street": "Damrak",
    "houseNumber": 1,
    "zipCode": "1012",
    "city": "Amsterdam",
    "country": "Netherlands",
}


def _snake(payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "street": payload["street"],
        "house_number": payload["houseNumber"],
        "zip_code": payload["zipCode"],
        "city": payload["city"],
        "country": payload["country"],
    }


@pytest.fixture
def seeded(repository: Any) -> Any:
    """Storage holding Paris (1), Berlin (2), Amsterdam (3) and Paris street (4)."""
    repository.add(**_snake(PARIS))
    repository.add(**_snake(BERLIN))
    repository.add(**_snake(AMSTERDAM))
    repository.add(
        street="Paris",
        house_number=12,
        zip_code="1000",
        city="Brussels",
        country="Belgium",
    )
    return repository


@pytest.mark.integration
class TestCreateAddress:
    """POST /addresses."""

    async def test_creates_with_storage_identity(
        self, client: AsyncClient, repository: Any
    ) -> None:
        response = await client.post("/addresses", json={**PARIS, "id": 500})

        body = response.json()
        with pytest_check.check:
            assert response.status_code == 201
        with pytest_check.check:
            assert body["id"] == 1
        with pytest_check.check:
            assert body["houseNumber"] == 99
        with pytest_check.check:
            assert 500 not in repository.rows

    async def test_location_points_at_get(self, client: AsyncClient) -> None:
        response = await client.post("/addresses", json=PARIS)

        location = response.headers["location"]
        with pytest_check.check:
            assert location == "http://testserver/addresses/1"
        with pytest_check.check:
            assert (await client.get(location)).json()["city"] == "Paris"

    async def test_identities_are_fresh(self, client: AsyncClient) -> None:
        first = await client.post("/addresses", json={**PARIS, "id": 7})
        second = await client.post("/addresses", json={**BERLIN, "id": 7})

        assert first.json()["id"] != second.json()["id"]

    async def test_missing_field_is_422(self, client: AsyncClient) -> None:
        payload = {key: value for key, value in PARIS.items() if key != "city"}

        response = await client.post("/addresses", json=payload)

        body = response.json()
        with pytest_check.check:
            assert response.status_code == 422
        with pytest_check.check:
            assert body["error_code"] == "VALIDATION_ERROR"
        with pytest_check.check:
            assert "city" in body["details"]["validation_errors"]

    async def test_non_integer_house_number_is_422(self, client: AsyncClient) -> None:
        response = await client.post(
            "/addresses", json={**PARIS, "houseNumber": "ninety-nine"}
        )

        assert response.status_code == 422


@pytest.mark.integration
@pytest.mark.usefixtures("seeded")
class TestGetAddress:
    """GET /addresses/{id}."""

    async def test_found(self, client: AsyncClient) -> None:
        response = await client.get("/addresses/2")

        body = response.json()
        with pytest_check.check:
            assert response.status_code == 200
        with pytest_check.check:
            assert body["city"] == "Berlin"
        with pytest_check.check:
            assert body["zipCode"] == "10117"
        with pytest_check.check:
            assert {"createdAt", "updatedAt"} <= body.keys()

    async def test_not_found(self, client: AsyncClient) -> None:
        response = await client.get("/addresses/999")

        body = response.json()
        with pytest_check.check:
            assert response.status_code == 404
        with pytest_check.check:
            assert body["error_code"] == "NOT_FOUND"
        with pytest_check.check:
            assert body["details"] == {"address_id": 999}

    async def test_non_integer_id_is_422(self, client: AsyncClient) -> None:
        response = await client.get("/addresses/abc")

        assert response.status_code == 422


@pytest.mark.integration
@pytest.mark.usefixtures("seeded")
class TestListAddresses:
    """GET /addresses with filter and orderBy."""

    @staticmethod
    def _ids(response: Any) -> list[int]:
        return [address["id"] for address in response.json()]

    async def test_all_in_storage_order(self, client: AsyncClient) -> None:
        response = await client.get("/addresses")

        with pytest_check.check:
            assert response.status_code == 200
        with pytest_check.check:
            assert self._ids(response) == [1, 2, 3, 4]

    async def test_filter_matches_any_field_exactly(
        self, client: AsyncClient
    ) -> None:
        response = await client.get("/addresses", params={"filter": "Paris"})

        assert self._ids(response) == [1, 4]

    async def test_filter_by_number(self, client: AsyncClient) -> None:
        # House number 1 and id 1 both match, each record appears once
        response = await client.get("/addresses", params={"filter": "1"})

        assert self._ids(response) == [1, 2, 3]

    async def test_filter_is_not_a_substring_match(self, client: AsyncClient) -> None:
        response = await client.get("/addresses", params={"filter": "Par"})

        assert response.json() == []

    async def test_empty_params_are_ignored(self, client: AsyncClient) -> None:
        response = await client.get("/addresses", params={"filter": "", "orderBy": ""})

        assert self._ids(response) == [1, 2, 3, 4]

    async def test_order_by_city_asc(self, client: AsyncClient) -> None:
        response = await client.get("/addresses", params={"orderBy": "City;asc"})

        cities = [address["city"] for address in response.json()]
        assert cities == sorted(cities)

    async def test_order_by_city_desc(self, client: AsyncClient) -> None:
        response = await client.get("/addresses", params={"orderBy": "City;desc"})

        cities = [address["city"] for address in response.json()]
        assert cities == sorted(cities, reverse=True)

    async def test_unknown_direction_sorts_descending(
        self, client: AsyncClient
    ) -> None:
        bogus = await client.get("/addresses", params={"orderBy": "City;bogus"})
        desc = await client.get("/addresses", params={"orderBy": "City;desc"})

        with pytest_check.check:
            assert bogus.status_code == 200
        with pytest_check.check:
            assert self._ids(bogus) == self._ids(desc)

    async def test_camel_case_field_name(self, client: AsyncClient) -> None:
        response = await client.get(
            "/addresses", params={"orderBy": "houseNumber;asc"}
        )

        # Equal house numbers keep storage order
        assert self._ids(response) == [2, 3, 4, 1]

    async def test_filter_then_sort(self, client: AsyncClient) -> None:
        response = await client.get(
            "/addresses", params={"filter": "Paris", "orderBy": "Id;desc"}
        )

        assert self._ids(response) == [4, 1]

    async def test_unknown_sort_field_is_400(self, client: AsyncClient) -> None:
        response = await client.get(
            "/addresses", params={"orderBy": "Nonexistent;asc"}
        )

        body = response.json()
        with pytest_check.check:
            assert response.status_code == 400
        with pytest_check.check:
            assert body["error_code"] == "INVALID_SORT_FIELD"
        with pytest_check.check:
            assert body["message"] == "Field Nonexistent for ordering does not exist"

    async def test_missing_table_is_404(
        self, client: AsyncClient, repository: Any
    ) -> None:
        repository.table_missing = True

        response = await client.get("/addresses")

        with pytest_check.check:
            assert response.status_code == 404
        with pytest_check.check:
            assert response.json()["error_code"] == "NOT_FOUND"


@pytest.mark.integration
@pytest.mark.usefixtures("seeded")
class TestReplaceAddress:
    """PUT /addresses/{id}."""

    async def test_path_identity_wins(
        self, client: AsyncClient, repository: Any
    ) -> None:
        response = await client.put(
            "/addresses/2", json={**AMSTERDAM, "id": 3, "street": "Nieuwendijk"}
        )

        with pytest_check.check:
            assert response.status_code == 204
        with pytest_check.check:
            assert response.content == b""
        with pytest_check.check:
            assert repository.rows[2].street == "Nieuwendijk"
        with pytest_check.check:
            assert repository.rows[3].street == "Damrak"

    async def test_replaced_record_is_returned_by_get(
        self, client: AsyncClient
    ) -> None:
        await client.put("/addresses/1", json={**PARIS, "houseNumber": 100})

        response = await client.get("/addresses/1")

        assert response.json()["houseNumber"] == 100

    async def test_missing_row_is_404(self, client: AsyncClient) -> None:
        response = await client.put("/addresses/999", json=PARIS)

        with pytest_check.check:
            assert response.status_code == 404
        with pytest_check.check:
            assert response.json()["details"] == {"address_id": 999}

    async def test_conflict_on_existing_row_is_500(
        self,
        app: FastAPI,
        repository: Any,
        client_for: Callable[..., AsyncClient],
    ) -> None:
        repository.stale_ids.add(1)

        async with client_for(app, raise_app_exceptions=False) as client:
            response = await client.put("/addresses/1", json=PARIS)

        body = response.json()
        with pytest_check.check:
            assert response.status_code == 500
        with pytest_check.check:
            assert body["error_code"] == "INTERNAL_ERROR"
        with pytest_check.check:
            assert body["details"]["type"] == "StaleDataError"
        with pytest_check.check:
            assert body["correlation_id"] == response.headers["x-correlation-id"]


@pytest.mark.integration
@pytest.mark.usefixtures("seeded")
class TestDeleteAddress:
    """DELETE /addresses/{id}."""

    async def test_delete_then_get_is_404(self, client: AsyncClient) -> None:
        deleted = await client.delete("/addresses/3")
        fetched = await client.get("/addresses/3")

        with pytest_check.check:
            assert deleted.status_code == 204
        with pytest_check.check:
            assert fetched.status_code == 404

    async def test_missing_is_404(self, client: AsyncClient) -> None:
        response = await client.delete("/addresses/999")

        assert response.status_code == 404

    async def test_second_delete_is_404(self, client: AsyncClient) -> None:
        await client.delete("/addresses/1")

        response = await client.delete("/addresses/1")

        assert response.status_code == 404
