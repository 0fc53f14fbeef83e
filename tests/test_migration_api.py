import io
import threading

from tests.utils.migration_data import GENERIC_CSV_WITH_BAD_ROW, NAVEX_CSV, TENANT

HEADERS = {"X-Tenant-ID": TENANT}


def _upload(client, content=NAVEX_CSV, file_name="navex.csv", data=None, headers=HEADERS):
    return client.post(
        "/migrations/upload",
        files={"file": (file_name, io.BytesIO(content.encode("utf-8")), "text/csv")},
        data=data or {},
        headers=headers,
    )


def _run_task(client, worker_pool, response):
    assert response.status_code == 202, response.text
    task = response.json()
    worker_pool.wait(task["task_id"], timeout=30)
    polled = client.get(f"/migration-tasks/{task['task_id']}")
    assert polled.status_code == 200
    return polled.json()


def _job(client, job_id):
    response = client.get(f"/migrations/{job_id}", headers=HEADERS)
    assert response.status_code == 200
    return response.json()["job"]


def test_health_and_root(client):
    assert client.get("/health").json()["status"] == "healthy"
    assert client.get("/").json()["message"] == "Migration Engine API"


def test_tenant_header_is_required(client):
    assert client.get("/migrations").status_code == 400
    assert _upload(client, headers={}).status_code == 400


def test_upload_returns_detection_and_suggestions(client):
    response = _upload(client)

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["job"]["state"] == "MAPPING"
    assert payload["detection"]["connector_id"] == "NAVEX"
    assert len(payload["suggestions"]) == 8


def test_upload_with_source_hint(client):
    response = _upload(client, GENERIC_CSV_WITH_BAD_ROW, "export.csv", data={"source_hint": "EQS"})

    candidates = {c["connector_id"]: c["confidence"] for c in response.json()["detection"]["candidates"]}
    assert candidates["EQS"] == 0.2


def test_upload_of_unsupported_file_is_rejected(client):
    response = client.post(
        "/migrations/upload",
        files={"file": ("report.pdf", io.BytesIO(b"%PDF"), "application/pdf")},
        headers=HEADERS,
    )

    assert response.status_code == 400


def test_full_migration_flow(client, worker_pool):
    job_id = _upload(client).json()["job"]["id"]

    mappings = client.get(f"/migrations/{job_id}/mappings", headers=HEADERS).json()
    assert mappings["missing_required"] == []

    task = _run_task(client, worker_pool, client.post(f"/migrations/{job_id}/validate", headers=HEADERS))
    assert task["status"] == "completed"
    assert task["action"] == "validate"
    assert _job(client, job_id)["state"] == "PREVIEW_READY"

    preview = client.get(f"/migrations/{job_id}/preview", headers=HEADERS).json()
    assert len(preview["rows"]) == 3
    assert preview["rows"][0]["transformed"]["case"]["status"] == "IN_PROGRESS"

    rejected = client.post(f"/migrations/{job_id}/import", json={"confirmation": "yes"}, headers=HEADERS)
    assert rejected.status_code == 400

    task = _run_task(
        client, worker_pool,
        client.post(f"/migrations/{job_id}/import", json={"confirmation": "IMPORT"}, headers=HEADERS),
    )
    assert task["status"] == "completed"
    job = _job(client, job_id)
    assert job["state"] == "COMPLETED"
    assert job["counters"]["imported_rows"] == 3
    assert job["active_task"] is None

    rows = client.get(f"/migrations/{job_id}/rows", params={"phase": "import"}, headers=HEADERS).json()
    assert rows["total_count"] == 3

    status = client.get(f"/migrations/{job_id}/rollback", headers=HEADERS).json()
    assert status["available"] is True
    assert status["record_count"] == 3

    task = _run_task(
        client, worker_pool,
        client.post(f"/migrations/{job_id}/rollback", json={"confirmation": "ROLLBACK"}, headers=HEADERS),
    )
    assert task["status"] == "completed"
    job = _job(client, job_id)
    assert job["state"] == "ROLLED_BACK"
    assert job["rollback_report"]["removed"] == 13


def test_validate_with_missing_required_mapping(client):
    job_id = _upload(client, GENERIC_CSV_WITH_BAD_ROW, "export.csv").json()["job"]["id"]
    client.put(
        f"/migrations/{job_id}/mappings",
        json={"mappings": [{"source_column": "ticket", "target_field": "sourceRecordId"}]},
        headers=HEADERS,
    )

    response = client.post(f"/migrations/{job_id}/validate", headers=HEADERS)

    assert response.status_code == 400
    assert response.json()["detail"]["missing_fields"] == ["details"]


def test_mapping_update_rejects_unknown_target(client):
    job_id = _upload(client).json()["job"]["id"]

    response = client.put(
        f"/migrations/{job_id}/mappings",
        json={"mappings": [{"source_column": "Description", "target_field": "favouriteColour"}]},
        headers=HEADERS,
    )

    assert response.status_code == 400


def test_mapping_update_rejects_blank_column(client):
    job_id = _upload(client).json()["job"]["id"]

    response = client.put(
        f"/migrations/{job_id}/mappings",
        json={"mappings": [{"source_column": " ", "target_field": "details"}]},
        headers=HEADERS,
    )

    assert response.status_code == 422


def test_import_before_validation_conflicts(client):
    job_id = _upload(client).json()["job"]["id"]

    response = client.post(f"/migrations/{job_id}/import", json={"confirmation": "IMPORT"}, headers=HEADERS)

    assert response.status_code == 409


def test_import_for_busy_job_leaves_state_unchanged(client, worker_pool):
    job_id = _upload(client).json()["job"]["id"]
    _run_task(client, worker_pool, client.post(f"/migrations/{job_id}/validate", headers=HEADERS))
    release = threading.Event()
    blocker = worker_pool.submit(job_id, "validate", lambda: release.wait(5))
    try:
        response = client.post(f"/migrations/{job_id}/import", json={"confirmation": "IMPORT"}, headers=HEADERS)

        assert response.status_code == 409
        assert _job(client, job_id)["state"] == "PREVIEW_READY"
    finally:
        release.set()
        worker_pool.wait(blocker.task_id, timeout=5)

    task = _run_task(
        client, worker_pool,
        client.post(f"/migrations/{job_id}/import", json={"confirmation": "IMPORT"}, headers=HEADERS),
    )
    assert task["status"] == "completed"
    assert _job(client, job_id)["state"] == "COMPLETED"


def test_cancel_outside_running_phase_conflicts(client):
    job_id = _upload(client).json()["job"]["id"]

    assert client.post(f"/migrations/{job_id}/cancel", headers=HEADERS).status_code == 409


def test_select_connector_endpoint(client):
    job_id = _upload(client).json()["job"]["id"]

    response = client.post(f"/migrations/{job_id}/connector", json={"connector_id": "EQS"}, headers=HEADERS)
    assert response.status_code == 200
    assert response.json()["connector_id"] == "EQS"

    unknown = client.post(f"/migrations/{job_id}/connector", json={"connector_id": "NOPE"}, headers=HEADERS)
    assert unknown.status_code == 400


def test_jobs_are_tenant_scoped(client):
    job_id = _upload(client).json()["job"]["id"]
    other = {"X-Tenant-ID": "tenant-b"}

    assert client.get(f"/migrations/{job_id}", headers=other).status_code == 404
    assert client.get("/migrations", headers=other).json()["total_count"] == 0
    listed = client.get("/migrations", headers=HEADERS).json()
    assert [j["id"] for j in listed["jobs"]] == [job_id]


def test_template_endpoints(client):
    job_id = _upload(client).json()["job"]["id"]

    saved = client.post("/migration-templates", json={"name": "navex", "job_id": job_id}, headers=HEADERS)
    assert saved.status_code == 200
    assert saved.json()["template"]["connector_id"] == "NAVEX"

    listed = client.get("/migration-templates", headers=HEADERS).json()["templates"]
    assert [t["name"] for t in listed] == ["navex"]

    applied = client.post(f"/migrations/{job_id}/template", json={"name": "navex"}, headers=HEADERS)
    assert applied.json()["template_name"] == "navex"

    assert client.get("/migration-templates/navex", headers=HEADERS).json()["template"]["field_count"] == 8
    assert client.delete("/migration-templates/navex", headers=HEADERS).status_code == 200
    assert client.get("/migration-templates/navex", headers=HEADERS).status_code == 404
    assert client.delete("/migration-templates/navex", headers=HEADERS).status_code == 404


def test_template_save_needs_mappings_or_job(client):
    response = client.post("/migration-templates", json={"name": "empty"}, headers=HEADERS)

    assert response.status_code == 400


def test_template_save_with_explicit_mappings(client):
    response = client.post(
        "/migration-templates",
        json={
            "name": "helpdesk",
            "mappings": [
                {"source_column": "ticket", "target_field": "sourceRecordId"},
                {"source_column": "concern", "target_field": "details"},
            ],
        },
        headers=HEADERS,
    )

    assert response.status_code == 200
    assert response.json()["template"]["mappings"][1]["transform"] == "trim"


def test_connector_listing(client):
    connectors = client.get("/migration-connectors").json()["connectors"]

    assert [c["connector_id"] for c in connectors] == ["NAVEX", "EQS", "LEGACY_ETHICO", "GENERIC_CSV"]
    assert connectors[-1]["fallback"] is True


def test_unknown_task_is_404(client):
    assert client.get("/migration-tasks/does-not-exist").status_code == 404


def test_unknown_job_is_404(client):
    assert client.get("/migrations/missing", headers=HEADERS).status_code == 404
    assert client.post("/migrations/missing/validate", headers=HEADERS).status_code == 404


def test_oversized_upload_is_413(client, test_settings):
    test_settings.upload_max_file_size_mb = 0

    assert _upload(client).status_code == 413
