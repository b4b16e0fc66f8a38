"""Integration tests for API endpoints.

These tests verify API endpoints work correctly end-to-end against the test
database, with the clock fixed on Monday 2025-10-20.
"""

import pytest


MWF_TEMPLATE = {
    "name": "Water plants",
    "project": "home",
    "unit": "week",
    "interval": 1,
    "constraint": {"kind": "wday", "days": ["mon", "wed", "fri"]},
    "start": "2025-10-01",
    "eta": "0:15",
}


@pytest.fixture
def template_ref(test_client):
    response = test_client.post("/templates", json=MWF_TEMPLATE)
    assert response.status_code == 201
    return response.json()["template"]["ref"]


class TestHealth:

    def test_health(self, test_client):
        """Test GET /health endpoint."""
        response = test_client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestTemplateEndpoints:
    """Test template API endpoints."""

    def test_create_template(self, test_client):
        """Test POST /templates materializes today's occurrence."""
        response = test_client.post("/templates", json=MWF_TEMPLATE)

        assert response.status_code == 201
        data = response.json()
        assert data["template"]["key"] == {"name": "Water plants", "project": "home", "section": None}
        assert data["template"]["rule"]["unit"] == "week"
        assert sorted(data["template"]["rule"]["constraint"]["days"]) == ["fri", "mon", "wed"]
        assert [i["due_date"] for i in data["materialized"]] == ["2025-10-20"]
        assert data["materialized"][0]["state"] == "materialized"

    def test_create_template_defaults_start_to_today(self, test_client):
        """Test a template without a start begins today."""
        response = test_client.post("/templates", json={"name": "Stretch", "unit": "day"})
        assert response.status_code == 201
        assert response.json()["template"]["rule"]["start"] == "2025-10-20"

    @pytest.mark.parametrize("payload", [
        {"name": "", "unit": "day"},
        {"name": "Stretch", "unit": "fortnight"},
        {"name": "Stretch", "unit": "day", "interval": 0},
        {"name": "Stretch", "unit": "day", "eta": "soon"},
        {"name": "Stretch", "unit": "month", "constraint": {"kind": "day", "days": [32]}},
    ])
    def test_create_template_validation(self, test_client, payload):
        """Test invalid template payloads are rejected."""
        response = test_client.post("/templates", json=payload)
        assert response.status_code == 422

    def test_preview_occurrences(self, test_client, template_ref):
        """Test GET /templates/{ref}/occurrences."""
        response = test_client.get(f"/templates/{template_ref}/occurrences", params={"count": 3})

        assert response.status_code == 200
        assert response.json()["dates"] == ["2025-10-20", "2025-10-22", "2025-10-24"]

    def test_preview_occurrences_as_of(self, test_client, template_ref):
        """Test previewing from another date."""
        response = test_client.get(
            f"/templates/{template_ref}/occurrences",
            params={"count": 2, "as_of": "2025-11-01"},
        )
        assert response.json()["dates"] == ["2025-11-03", "2025-11-05"]

    def test_update_template(self, test_client, template_ref):
        """Test PUT /templates/{ref} replaces the rule and re-materializes."""
        response = test_client.put(
            f"/templates/{template_ref}",
            json={"unit": "day", "interval": 1, "start": "2025-10-20"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["template"]["rule"]["unit"] == "day"
        assert [i["due_date"] for i in data["materialized"]] == ["2025-10-21"]

    def test_unknown_template(self, test_client):
        """Test unknown template refs return 404."""
        assert test_client.get("/templates/nonexistent-id/occurrences").status_code == 404
        response = test_client.put("/templates/nonexistent-id", json={"unit": "day"})
        assert response.status_code == 404


class TestTaskEndpoints:
    """Test task list and completion endpoints."""

    def test_list_tasks(self, test_client, template_ref):
        """Test GET /tasks hides templates with an open occurrence."""
        response = test_client.get("/tasks")

        assert response.status_code == 200
        data = response.json()
        assert data["templates"] == []
        assert [i["due_date"] for i in data["instances"]] == ["2025-10-20"]
        assert data["virtuals"] == []

    def test_list_tasks_virtuals(self, test_client, template_ref):
        """Test future occurrences are listed as virtual."""
        data = test_client.get("/tasks", params={"virtual_count": 3}).json()
        assert [v["due_date"] for v in data["virtuals"]] == ["2025-10-22", "2025-10-24"]
        assert all(v["state"] == "virtual" for v in data["virtuals"])

    def test_complete_task(self, test_client, template_ref):
        """Test POST /tasks/{ref}/complete persists the next occurrence."""
        instance = test_client.get("/tasks").json()["instances"][0]

        response = test_client.post(f"/tasks/{instance['ref']}/complete")

        assert response.status_code == 200
        data = response.json()
        assert data["completed"]["state"] == "completed"
        assert data["completed"]["due_date"] == "2025-10-20"
        assert data["next_due_date"] == "2025-10-22"
        assert data["next_instance"]["state"] == "materialized"

    def test_complete_task_twice(self, test_client, template_ref):
        """Test completing a completed task is rejected."""
        instance = test_client.get("/tasks").json()["instances"][0]
        test_client.post(f"/tasks/{instance['ref']}/complete")

        response = test_client.post(f"/tasks/{instance['ref']}/complete")
        assert response.status_code == 400

    def test_complete_unknown_task(self, test_client):
        """Test completing an unknown task returns 404."""
        response = test_client.post("/tasks/nonexistent-id/complete")
        assert response.status_code == 404

    def test_complete_virtual_occurrence(self, test_client, template_ref):
        """Test completing a not yet persisted occurrence."""
        response = test_client.post(f"/templates/{template_ref}/occurrences/2025-10-24/complete")

        assert response.status_code == 200
        data = response.json()
        assert data["completed"]["due_date"] == "2025-10-24"
        assert data["next_due_date"] == "2025-10-27"

    def test_complete_virtual_not_an_occurrence(self, test_client, template_ref):
        """Test a date the rule does not produce is rejected."""
        response = test_client.post(f"/templates/{template_ref}/occurrences/2025-10-23/complete")
        assert response.status_code == 400

    def test_update_task(self, test_client, template_ref):
        """Test PATCH /tasks/{ref} moves an occurrence without it coming back."""
        instance = test_client.get("/tasks").json()["instances"][0]

        response = test_client.patch(f"/tasks/{instance['ref']}", json={"due_date": "2025-10-25"})

        assert response.status_code == 200
        task = response.json()["task"]
        assert task["due_date"] == "2025-10-25"
        assert task["occurrence_date"] == "2025-10-20"
        assert task["eta"] == "0:15"

        response = test_client.post("/materialize", params={"force": True})
        assert response.json()["created_count"] == 0
        assert [i["due_date"] for i in test_client.get("/tasks").json()["instances"]] == ["2025-10-25"]

    def test_update_task_validation(self, test_client, template_ref):
        """Test an unknown task or a malformed eta is rejected."""
        instance = test_client.get("/tasks").json()["instances"][0]

        response = test_client.patch(f"/tasks/{instance['ref']}", json={"eta": "soon"})
        assert response.status_code == 422
        response = test_client.patch("/tasks/nonexistent-id", json={"eta": "0:30"})
        assert response.status_code == 404

    def test_reopen_task(self, test_client, template_ref):
        """Test POST /tasks/{ref}/reopen undoes a completion."""
        instance = test_client.get("/tasks").json()["instances"][0]
        test_client.post(f"/tasks/{instance['ref']}/complete")

        response = test_client.post(f"/tasks/{instance['ref']}/reopen")

        assert response.status_code == 200
        assert response.json()["task"]["state"] == "materialized"
        assert response.json()["task"]["due_date"] == "2025-10-20"

    def test_reopen_open_or_unknown_task(self, test_client, template_ref):
        """Test only a completed task can be reopened."""
        instance = test_client.get("/tasks").json()["instances"][0]

        assert test_client.post(f"/tasks/{instance['ref']}/reopen").status_code == 400
        assert test_client.post("/tasks/nonexistent-id/reopen").status_code == 404


class TestMaterializeEndpoint:
    """Test the periodic materialization trigger."""

    def test_materialize_gated(self, test_client, template_ref):
        """Test an unforced run right after a forced one does nothing."""
        response = test_client.post("/materialize")
        assert response.status_code == 200
        assert response.json()["created_count"] == 0

    def test_materialize_forced_is_idempotent(self, test_client, template_ref):
        """Test a forced run does not duplicate existing occurrences."""
        response = test_client.post("/materialize", params={"force": True})
        assert response.json() == {"created_count": 0, "created": []}
