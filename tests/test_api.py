import uuid

from sqlalchemy.exc import OperationalError

from app.services.data_source import get_data_source
from main import app


def _create_employee(client, file_number="10001", **overrides):
    payload = {
        "full_name": "أحمد محمد الكندري",
        "rank": "رائد",
        "file_number": file_number,
        "category": "ضابط",
        **overrides,
    }
    response = client.post("/api/employees", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def _license_payload(employee_id, license_date, hours=None, **overrides):
    payload = {
        "employee_id": employee_id,
        "license_type": "نصف يوم" if hours else "يوم كامل",
        "license_date": license_date,
        "hours": hours,
        **overrides,
    }
    return payload


def test_root_and_health(client):
    assert client.get("/").json()["ok"] is True
    assert client.get("/health").json()["ok"] is True


def test_employee_crud(client):
    created = _create_employee(client, category="officer")
    assert created["category"] == "ضابط"

    duplicate = client.post(
        "/api/employees",
        json={"full_name": "آخر", "rank": "نقيب", "file_number": "10001", "category": "ضابط"},
    )
    assert duplicate.status_code == 409

    patched = client.patch(f"/api/employees/{created['id']}", json={"rank": "مقدم"})
    assert patched.status_code == 200
    assert patched.json()["rank"] == "مقدم"
    assert patched.json()["file_number"] == "10001"

    replaced = client.put(
        f"/api/employees/{created['id']}",
        json={"full_name": "أحمد", "rank": "نقيب", "file_number": "10009", "category": "nco"},
    )
    assert replaced.json()["category"] == "ضابط صف"

    assert client.get(f"/api/employees/{created['id']}").status_code == 200
    assert client.delete(f"/api/employees/{created['id']}").status_code == 204
    assert client.get(f"/api/employees/{created['id']}").status_code == 404


def test_employee_rejects_unknown_category(client):
    response = client.post(
        "/api/employees",
        json={"full_name": "x", "rank": "y", "file_number": "1", "category": "general"},
    )
    assert response.status_code == 422


def test_employee_list_is_sorted_and_searchable(client):
    _create_employee(client, "3", full_name="سالم", rank="فني", category="مهني")
    _create_employee(client, "2", full_name="محمد", rank="رقيب", category="ضابط صف")
    _create_employee(client, "1", full_name="فاطمة", rank="نقيب", category="ضابط")

    names = [item["full_name"] for item in client.get("/api/employees").json()]
    assert names == ["فاطمة", "محمد", "سالم"]

    found = client.get("/api/employees", params={"q": "محم"}).json()
    assert [item["full_name"] for item in found] == ["محمد"]

    officers = client.get("/api/employees", params={"category": "officer"}).json()
    assert [item["full_name"] for item in officers] == ["فاطمة"]


def test_license_submission_flow(client):
    employee = _create_employee(client)
    employee_id = employee["id"]

    first = client.post("/api/licenses", json=_license_payload(employee_id, "2024-03-01"))
    assert first.status_code == 201, first.text
    body = first.json()
    assert body["decision"]["status"] == "accepted"
    assert body["license"]["month"] == 3
    assert body["license"]["year"] == 2024
    assert body["license"]["employee"]["id"] == employee_id

    client.post("/api/licenses", json=_license_payload(employee_id, "2024-03-02"))

    warned = client.post("/api/licenses", json=_license_payload(employee_id, "2024-03-03"))
    assert warned.status_code == 409
    assert warned.json()["error"] == "confirmation_required"
    assert warned.json()["decision"]["requires_confirmation"] is True

    confirmed = client.post(
        "/api/licenses",
        json=_license_payload(employee_id, "2024-03-03", confirm_warnings=True),
    )
    assert confirmed.status_code == 201
    assert confirmed.json()["decision"]["status"] == "warned"

    blocked = client.post(
        "/api/licenses",
        json=_license_payload(employee_id, "2024-03-04", confirm_warnings=True),
    )
    assert blocked.status_code == 409
    assert blocked.json()["error"] == "blocked"
    assert blocked.json()["reason"] == "monthly_limit_exceeded"
    notice = blocked.json()["decision"]["notices"][0]
    assert notice["axis"] == "full_days"
    assert notice["message_ar"]

    duplicate = client.post("/api/licenses", json=_license_payload(employee_id, "2024-03-01", hours=1))
    assert duplicate.status_code == 409
    assert duplicate.json()["reason"] == "duplicate_date"
    assert duplicate.json()["decision"]["conflicts"][0]["id"] == body["license"]["id"]

    assert len(client.get(f"/api/employees/{employee_id}/licenses").json()) == 3


def test_hours_cap_blocks_on_reaching_limit(client):
    employee_id = _create_employee(client)["id"]
    client.post("/api/licenses", json=_license_payload(employee_id, "2024-04-01", hours=5))
    client.post("/api/licenses", json=_license_payload(employee_id, "2024-04-02", hours=5))

    reaching = client.post("/api/licenses", json=_license_payload(employee_id, "2024-04-03", hours=2))
    assert reaching.status_code == 409
    assert reaching.json()["decision"]["notices"][0]["axis"] == "hours"

    fits = client.post("/api/licenses", json=_license_payload(employee_id, "2024-04-03", hours=1))
    assert fits.status_code == 201

    stats = client.get(
        f"/api/employees/{employee_id}/monthly-stats", params={"year": 2024, "month": 4}
    ).json()
    assert stats["total_partial_hours"] == 11
    assert stats["remaining_hours"] == 1
    assert stats["partial_day_count"] == 3


def test_invalid_license_input(client):
    unknown = client.post(
        "/api/licenses", json=_license_payload(str(uuid.uuid4()), "2024-03-01")
    )
    assert unknown.status_code == 422
    assert unknown.json()["error"] == "invalid_input"

    employee_id = _create_employee(client)["id"]
    no_hours = client.post(
        "/api/licenses",
        json={"employee_id": employee_id, "license_type": "نصف يوم", "license_date": "2024-03-01"},
    )
    assert no_hours.status_code == 422
    assert no_hours.json()["error"] == "invalid_input"

    bad_date = client.post("/api/licenses", json=_license_payload(employee_id, "2024-13-01"))
    assert bad_date.status_code == 422
    assert bad_date.json()["error"] == "invalid_input"


def test_impossible_date_and_unknown_employee_share_error_shape(client):
    employee_id = _create_employee(client)["id"]

    impossible = client.post("/api/licenses", json=_license_payload(employee_id, "2024-02-30"))
    dry_run = client.post(
        "/api/licenses/validate", json=_license_payload(employee_id, "2024-02-30")
    )
    unknown = client.post(
        "/api/licenses/validate", json=_license_payload(str(uuid.uuid4()), "2024-03-01")
    )

    for response in (impossible, dry_run, unknown):
        assert response.status_code == 422
        assert response.json()["error"] == "invalid_input"
    assert "license_date" in impossible.json()["detail"]
    assert client.get("/api/licenses").json() == []


def test_license_update_rejects_malformed_body(client):
    employee_id = _create_employee(client)["id"]
    created = client.post("/api/licenses", json=_license_payload(employee_id, "2024-03-01"))
    license_id = created.json()["license"]["id"]

    response = client.put(
        f"/api/licenses/{license_id}",
        json=_license_payload(employee_id, "2024-03-05", hours=0, license_type="نصف يوم"),
    )

    assert response.status_code == 422
    assert response.json()["error"] == "invalid_input"
    assert client.get(f"/api/licenses/{license_id}").json()["license_date"] == "2024-03-01"


def test_validate_endpoint_is_a_dry_run(client):
    employee_id = _create_employee(client)["id"]

    response = client.post("/api/licenses/validate", json=_license_payload(employee_id, "2024-03-01"))

    assert response.status_code == 200
    assert response.json()["status"] == "accepted"
    assert response.json()["allowed"] is True
    assert client.get("/api/licenses").json() == []


def test_license_update_and_delete(client):
    employee_id = _create_employee(client)["id"]
    created = client.post("/api/licenses", json=_license_payload(employee_id, "2024-03-31")).json()
    license_id = created["license"]["id"]

    updated = client.put(
        f"/api/licenses/{license_id}", json=_license_payload(employee_id, "2024-04-01", hours=2)
    )
    assert updated.status_code == 200
    assert updated.json()["license"]["month"] == 4
    assert updated.json()["license"]["hours"] == 2

    same_day = client.put(
        f"/api/licenses/{license_id}", json=_license_payload(employee_id, "2024-04-01", hours=3)
    )
    assert same_day.status_code == 200

    assert client.put(
        f"/api/licenses/{uuid.uuid4()}", json=_license_payload(employee_id, "2024-04-02")
    ).status_code == 404

    assert client.delete(f"/api/licenses/{license_id}").status_code == 204
    assert client.get(f"/api/licenses/{license_id}").status_code == 404


def test_check_duplicate(client):
    employee_id = _create_employee(client)["id"]
    created = client.post("/api/licenses", json=_license_payload(employee_id, "2024-03-01")).json()

    found = client.get(f"/api/licenses/check-duplicate/{employee_id}/2024-03-01").json()
    assert found["has_duplicate"] is True

    excluded = client.get(
        f"/api/licenses/check-duplicate/{employee_id}/2024-03-01",
        params={"exclude_id": created["license"]["id"]},
    ).json()
    assert excluded["has_duplicate"] is False


def test_deleting_employee_removes_licenses(client):
    employee_id = _create_employee(client)["id"]
    created = client.post("/api/licenses", json=_license_payload(employee_id, "2024-03-01")).json()

    assert client.delete(f"/api/employees/{employee_id}").status_code == 204

    assert client.get(f"/api/licenses/{created['license']['id']}").status_code == 404
    assert client.get("/api/licenses").json() == []


def test_bulk_import(client):
    _create_employee(client, "10001")

    response = client.post(
        "/api/employees/bulk",
        json=[
            {"full_name": "محمد", "rank": "رقيب", "file_number": "20001", "category": "ضابط صف"},
            {"full_name": "نورا", "rank": "عريف", "file_number": "20001", "category": "ضابط صف"},
            {"full_name": "سالم", "rank": "رائد", "file_number": "10001", "category": "ضابط"},
            {"full_name": "", "rank": "فني", "file_number": "30001", "category": "مهني"},
            {"full_name": "عبدالله", "rank": "فني", "file_number": "30002", "category": "عسكري"},
        ],
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success_count"] == 1
    assert body["error_count"] == 4
    errors = [item["error"] for item in body["results"]["errors"]]
    assert errors[:3] == ["رقم الملف موجود مسبقاً", "رقم الملف موجود مسبقاً", "بيانات مفقودة"]
    assert errors[3].startswith("بيانات غير صالحة")

    assert client.post("/api/employees/bulk", json=[]).status_code == 400


def test_csv_import_and_template(client):
    template = client.get("/api/employees/template")
    assert template.status_code == 200
    assert template.text.startswith("full_name,rank,file_number,category")

    response = client.post(
        "/api/employees/import-csv",
        json={"csv_text": "full_name,rank,file_number,category\nمحمد,رقيب,20001,nco\n\nنورا,عريف\n"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success_count"] == 1
    assert body["error_count"] == 1
    assert body["results"]["success"][0]["category"] == "ضابط صف"


def test_license_listing_filters_and_export(client):
    officer = _create_employee(client, "10001")["id"]
    nco = _create_employee(client, "20001", full_name="محمد", rank="رقيب", category="ضابط صف")["id"]
    client.post("/api/licenses", json=_license_payload(nco, "2024-03-05"))
    client.post("/api/licenses", json=_license_payload(officer, "2024-03-01"))
    client.post("/api/licenses", json=_license_payload(officer, "2024-04-01", hours=2))

    listed = client.get("/api/licenses").json()
    assert [(item["employee_id"], item["license_date"]) for item in listed] == [
        (officer, "2024-04-01"),
        (officer, "2024-03-01"),
        (nco, "2024-03-05"),
    ]

    march = client.get("/api/licenses", params={"year": 2024, "month": 3}).json()
    assert len(march) == 2

    partial = client.get("/api/licenses", params={"license_type": "partial_day"}).json()
    assert [item["license_date"] for item in partial] == ["2024-04-01"]

    recent = client.get("/api/licenses", params={"order": "recent"}).json()
    assert recent[0]["license_date"] == "2024-04-01"

    export = client.get("/api/licenses/export.csv")
    assert export.status_code == 200
    assert export.headers["content-type"].startswith("text/csv")
    assert export.content.startswith(b"\xef\xbb\xbf")
    assert export.content.count(b"\r\n") == 4


def test_reports_and_stats(client):
    officer = _create_employee(client, "10001")["id"]
    nco = _create_employee(client, "20001", full_name="محمد", rank="رقيب", category="ضابط صف")["id"]
    client.post("/api/licenses", json=_license_payload(officer, "2025-01-05"))
    client.post("/api/licenses", json=_license_payload(officer, "2025-01-12", hours=3))
    client.post("/api/licenses", json=_license_payload(nco, "2025-01-15", hours=2))

    summary = client.get(
        "/api/reports/summary", params={"year": 2025, "month": 1, "category": ["ضابط", "ضابط صف"]}
    ).json()
    assert summary["title"] == "تقرير متابعة موظفي إدارة السجل العام لسنة 2025"
    assert summary["subtitle"] == "لشهر يناير ( ضباط / ضباط صف )"
    assert [row["employee"]["id"] for row in summary["rows"]] == [officer, nco]
    assert summary["rows"][0]["total_hours"] == 12
    assert summary["totals"]["licenses"] == 3

    summary_csv = client.get("/api/reports/summary.csv", params={"year": 2025})
    assert summary_csv.status_code == 200
    assert "الإجمالي".encode() in summary_csv.content

    limits = client.get("/api/reports/monthly-limits", params={"year": 2025, "month": 1}).json()
    assert limits["full_day_limit"] == 3
    assert [row["employee"]["id"] for row in limits["rows"]] == [officer, nco]

    stats = client.get("/api/stats").json()
    assert stats["total_employees"] == 2
    assert stats["total_licenses"] == 3
    assert stats["full_day_licenses"] == 1
    assert stats["partial_day_licenses"] == 2
    assert stats["total_hours"] == 5
    assert stats["most_active_month"] == "1/2025"
    assert stats["most_active_employee"]["employee"]["id"] == officer
    assert stats["employee_counts"]["ضابط"] == 1
    assert stats["employee_counts"]["مدني"] == 0
    assert len(stats["recent_licenses"]) == 3


class UnavailableSource:
    def list_employees(self):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))


def test_store_outage_maps_to_503(client):
    app.dependency_overrides[get_data_source] = lambda: UnavailableSource()

    response = client.get("/api/employees")

    assert response.status_code == 503
    assert response.json() == {"error": "data_source_unavailable"}
