from uuid import uuid4

from reservo.models.staff import Staff
from tests.conftest import business_headers


def window_payload(**overrides):
    payload = {
        "start_date": "2025-06-01",
        "end_date": "2025-06-30",
        "start_time": "09:00",
        "end_time": "17:00",
    }
    payload.update(overrides)
    return payload


class TestWorkWindowAPI:
    async def test_create_list_update_delete(self, client, sample_business, staff_a):
        headers = business_headers(sample_business.id)
        base_url = f"/api/v1/staff/{staff_a.uuid}/work-windows"

        created = await client.post(base_url, json=window_payload(), headers=headers)
        assert created.status_code == 201
        window_uuid = created.json()["uuid"]

        listing = await client.get(base_url, headers=headers)
        assert [w["uuid"] for w in listing.json()] == [window_uuid]

        updated = await client.put(
            f"{base_url}/{window_uuid}", json={"end_time": "18:00"}, headers=headers
        )
        assert updated.status_code == 200
        assert updated.json()["end_time"] == "18:00"

        deleted = await client.delete(f"{base_url}/{window_uuid}", headers=headers)
        assert deleted.status_code == 204

        listing = await client.get(base_url, headers=headers)
        assert listing.json() == []

    async def test_overlapping_window_is_conflict(self, client, sample_business, staff_a):
        headers = business_headers(sample_business.id)
        base_url = f"/api/v1/staff/{staff_a.uuid}/work-windows"

        await client.post(base_url, json=window_payload(), headers=headers)
        response = await client.post(
            base_url, json=window_payload(start_time="16:00", end_time="20:00"), headers=headers
        )

        assert response.status_code == 409
        assert response.json()["reason"] == "work_window_conflict"

    async def test_inverted_hours_are_invalid(self, client, sample_business, staff_a):
        response = await client.post(
            f"/api/v1/staff/{staff_a.uuid}/work-windows",
            json=window_payload(start_time="17:00", end_time="09:00"),
            headers=business_headers(sample_business.id),
        )

        assert response.status_code == 422
        assert response.json()["reason"] == "invalid_input"

    async def test_bulk_reports_skipped_runs(self, client, sample_business, staff_a):
        headers = business_headers(sample_business.id)
        base_url = f"/api/v1/staff/{staff_a.uuid}/work-windows"

        await client.post(
            base_url,
            json=window_payload(
                start_date="2025-06-10", end_date="2025-06-10", start_time="12:00", end_time="13:00"
            ),
            headers=headers,
        )
        response = await client.post(
            f"{base_url}/bulk",
            json=window_payload(start_date="2025-06-02", end_date="2025-06-15"),
            headers=headers,
        )

        assert response.status_code == 201
        body = response.json()
        assert [(w["start_date"], w["end_date"]) for w in body["created"]] == [
            ("2025-06-02", "2025-06-06")
        ]
        assert body["skipped"][0]["start_date"] == "2025-06-09"

    async def test_new_window_opens_availability(
        self, client, sample_business, sample_service, staff_a
    ):
        headers = business_headers(sample_business.id)
        params = {"service_id": str(sample_service.uuid), "date": "2025-06-10"}

        before = await client.get("/api/v1/availability", params=params, headers=headers)
        await client.post(
            f"/api/v1/staff/{staff_a.uuid}/work-windows",
            json=window_payload(start_time="09:00", end_time="10:00"),
            headers=headers,
        )
        after = await client.get("/api/v1/availability", params=params, headers=headers)

        assert before.json()["slots"] == []
        assert after.json()["slots"] == ["09:00", "09:30"]

    async def test_staff_of_another_business_is_not_found(
        self, client, db, other_business, staff_a
    ):
        response = await client.get(
            f"/api/v1/staff/{staff_a.uuid}/work-windows",
            headers=business_headers(other_business.id),
        )

        assert response.status_code == 404

    async def test_unknown_window_is_not_found(self, client, db, sample_business):
        staff = Staff(business_id=sample_business.id, name="Casey")
        db.add(staff)
        await db.commit()

        response = await client.delete(
            f"/api/v1/staff/{staff.uuid}/work-windows/{uuid4()}",
            headers=business_headers(sample_business.id),
        )

        assert response.status_code == 404
