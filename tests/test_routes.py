"""
HTTP API tests.

Exercise the blueprints through the Flask test client: tenant headers, JSON
bodies and the error-to-status mapping.
"""

import pytest

from tests.conftest import REASON


def _headers(school, actor_id=None):
    headers = {"X-Tenant-Id": str(school.id)}
    if actor_id is not None:
        headers["X-Actor-Id"] = str(actor_id)
    return headers


@pytest.fixture
def api(client, db_session):
    return client


class TestHealth:
    def test_health_reports_database(self, api):
        response = api.get("/api/health")
        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "ok"
        assert data["database"]["status"] == "healthy"


class TestTenantHeader:
    def test_missing_tenant_header(self, api):
        assert api.get("/api/academic-sessions").status_code == 400

    def test_malformed_tenant_header(self, api):
        response = api.get("/api/academic-sessions", headers={"X-Tenant-Id": "abc"})
        assert response.status_code == 400

    def test_unknown_tenant(self, api):
        response = api.get("/api/academic-sessions", headers={"X-Tenant-Id": "9999"})
        assert response.status_code == 404


class TestSettingsApi:
    def test_global_read_without_tenant(self, api, defaults):
        response = api.get("/api/settings/website.prefixes")
        assert response.status_code == 200
        assert response.get_json()["value"]["student_id"] == "STD"

    def test_tenant_write_then_read(self, api, defaults, school_a):
        response = api.put(
            "/api/settings/website.prefixes",
            json={"value": {"student_id": "GHS"}, "reason": "Local branding"},
            headers=_headers(school_a, actor_id=7),
        )
        assert response.status_code == 200
        record = response.get_json()["record"]
        assert record["scope_type"] == "TENANT"
        assert record["updated_by_user_id"] == 7

        value = api.get("/api/settings/website.prefixes", headers=_headers(school_a)).get_json()["value"]
        assert value["student_id"] == "GHS"
        assert value["staff_id"] == "STF"

    def test_layers_endpoint(self, api, defaults, school_a):
        api.put("/api/settings/website.prefixes", json={"value": {"student_id": "GHS"}}, headers=_headers(school_a))

        data = api.get("/api/settings/website.prefixes/layers", headers=_headers(school_a)).get_json()
        assert data["layers"]["TENANT"] == {"student_id": "GHS"}
        assert data["layers"]["BRANCH"] is None
        assert data["effective"]["student_id"] == "GHS"

    def test_patch_merges(self, api, defaults, school_a):
        api.put("/api/settings/general.api_keys", json={"value": {"a": 1}}, headers=_headers(school_a))
        response = api.patch("/api/settings/general.api_keys", json={"value": {"b": 2}}, headers=_headers(school_a))
        assert response.status_code == 200

        layers = api.get("/api/settings/general.api_keys/layers", headers=_headers(school_a)).get_json()["layers"]
        assert layers["TENANT"] == {"a": 1, "b": 2}

    def test_branch_scope(self, api, defaults, school_a, branch_a):
        response = api.put(
            f"/api/settings/website.prefixes?branch_id={branch_a.id}",
            json={"value": {"student_id": "NTH"}},
            headers=_headers(school_a),
        )
        assert response.status_code == 200
        assert response.get_json()["record"]["scope_type"] == "BRANCH"

        value = api.get(
            f"/api/settings/website.prefixes?branch_id={branch_a.id}", headers=_headers(school_a)
        ).get_json()["value"]
        assert value["student_id"] == "NTH"

    def test_foreign_branch_is_rejected(self, api, defaults, school_b, branch_a):
        response = api.get(f"/api/settings/website.prefixes?branch_id={branch_a.id}", headers=_headers(school_b))
        assert response.status_code == 400

    def test_invalid_pattern_is_rejected(self, api, defaults, school_a):
        response = api.put(
            "/api/settings/website.id_formats",
            json={"value": {"student_id": {"pattern": "{PREFIX}-{YEAR}"}}},
            headers=_headers(school_a),
        )
        assert response.status_code == 400
        assert response.get_json()["type"] == "invalid_argument"

    def test_empty_value_is_rejected(self, api, defaults, school_a):
        response = api.put("/api/settings/website.prefixes", json={"value": {}}, headers=_headers(school_a))
        assert response.status_code == 400

    def test_invalid_key_is_rejected(self, api, defaults):
        assert api.get("/api/settings/Bad_Key").status_code == 400

    def test_list_documents_at_scope(self, api, defaults, school_a):
        api.put("/api/settings/website.themes", json={"value": {"primary_color": "red"}}, headers=_headers(school_a))

        tenant_docs = api.get("/api/settings", headers=_headers(school_a)).get_json()
        assert tenant_docs["scope"] == f"TENANT:{school_a.id}"
        assert tenant_docs["documents"] == {"website.themes": {"primary_color": "red"}}

        global_docs = api.get("/api/settings").get_json()["documents"]
        assert "website.prefixes" in global_docs

    def test_history_is_newest_first(self, api, defaults, school_a):
        for color in ("red", "blue"):
            api.put(
                "/api/settings/website.themes",
                json={"value": {"primary_color": color}, "reason": f"switch to {color}"},
                headers=_headers(school_a, actor_id=3),
            )

        history = api.get("/api/settings/website.themes/history", headers=_headers(school_a)).get_json()["history"]
        assert [h["change_reason"] for h in history] == ["switch to blue", "switch to red"]
        assert history[0]["old_value_json"] == {"primary_color": "red"}


class TestCalendarApi:
    def _create(self, api, school, **overrides):
        body = {"name": "2025/2026", "start_date": "2025-09-01", "end_date": "2026-07-31"}
        body.update(overrides)
        return api.post("/api/academic-sessions", json=body, headers=_headers(school, actor_id=1))

    def test_create_returns_terms(self, api, defaults, school_a):
        response = self._create(api, school_a)
        assert response.status_code == 201
        session = response.get_json()["session"]
        assert session["status"] == "pending"
        assert [t["start_date"] for t in session["terms"]] == ["2025-09-01", "2025-12-01", "2026-03-01"]
        assert session["terms"][-1]["end_date"] == "2026-07-31"

    def test_create_with_bad_dates(self, api, defaults, school_a):
        response = self._create(api, school_a, start_date="2026-09-01")
        assert response.status_code == 400

    def test_is_current_must_be_a_json_boolean(self, api, defaults, school_a):
        response = self._create(api, school_a, is_current="false")
        assert response.status_code == 400
        assert response.get_json()["type"] == "invalid_argument"

    def test_activate_and_current(self, api, defaults, school_a):
        session_id = self._create(api, school_a).get_json()["session"]["id"]

        response = api.post(f"/api/academic-sessions/{session_id}/activate", headers=_headers(school_a))
        assert response.status_code == 200
        assert response.get_json()["session"]["is_current"] is True

        current = api.get("/api/academic-sessions/current", headers=_headers(school_a)).get_json()
        assert current["session"]["id"] == session_id
        assert current["term"] is None

    def test_close_current_session_is_conflict(self, api, defaults, school_a):
        session_id = self._create(api, school_a, is_current=True).get_json()["session"]["id"]

        response = api.post(
            f"/api/academic-sessions/{session_id}/close", json={"reason": REASON}, headers=_headers(school_a)
        )
        assert response.status_code == 409
        assert response.get_json()["type"] == "state_transition"

    def test_short_reason_is_bad_request(self, api, defaults, school_a):
        session_id = self._create(api, school_a).get_json()["session"]["id"]
        response = api.post(
            f"/api/academic-sessions/{session_id}/close", json={"reason": "short"}, headers=_headers(school_a)
        )
        assert response.status_code == 400

    def test_reopen_into_next_session_is_conflict(self, api, defaults, school_a):
        old_id = self._create(api, school_a, name="2024", start_date="2024-09-01",
                              end_date="2025-07-31", is_current=True).get_json()["session"]["id"]
        self._create(api, school_a, name="2025", is_current=True)
        api.post(f"/api/academic-sessions/{old_id}/close", json={"reason": REASON}, headers=_headers(school_a))

        response = api.post(
            f"/api/academic-sessions/{old_id}/reopen",
            json={"reason": REASON, "new_end_date": "2025-09-15"},
            headers=_headers(school_a),
        )
        assert response.status_code == 409
        assert response.get_json()["type"] == "date_conflict"

    def test_other_tenant_cannot_see_session(self, api, defaults, school_a, school_b):
        session_id = self._create(api, school_a).get_json()["session"]["id"]
        response = api.get(f"/api/academic-sessions/{session_id}", headers=_headers(school_b))
        assert response.status_code == 404

        listed = api.get("/api/academic-sessions", headers=_headers(school_b)).get_json()["sessions"]
        assert listed == []

    def test_term_actions(self, api, defaults, school_a):
        session = self._create(api, school_a, is_current=True).get_json()["session"]
        first_id = session["terms"][0]["id"]

        response = api.post(f"/api/terms/{first_id}/activate", headers=_headers(school_a))
        assert response.get_json()["term"]["is_current"] is True

        response = api.post(f"/api/terms/{first_id}/close", json={"reason": REASON}, headers=_headers(school_a))
        assert response.get_json()["term"]["status"] == "closed"

        response = api.post(
            f"/api/terms/{first_id}/reopen",
            json={"reason": REASON, "new_end_date": "2025-11-20"},
            headers=_headers(school_a),
        )
        assert response.status_code == 200
        assert response.get_json()["term"]["end_date"] == "2025-11-20"

    def test_list_terms_with_deleted(self, api, defaults, school_a):
        session = self._create(api, school_a).get_json()["session"]
        third_id = session["terms"][2]["id"]
        api.delete(f"/api/terms/{third_id}", headers=_headers(school_a))

        url = f"/api/academic-sessions/{session['id']}/terms"
        assert len(api.get(url, headers=_headers(school_a)).get_json()["terms"]) == 2
        assert len(api.get(url + "?include_deleted=1", headers=_headers(school_a)).get_json()["terms"]) == 3

    def test_unknown_term_action(self, api, defaults, school_a):
        session = self._create(api, school_a).get_json()["session"]
        response = api.post(f"/api/terms/{session['terms'][0]['id']}/promote", headers=_headers(school_a))
        assert response.status_code == 404

    def test_bulk_delete(self, api, defaults, school_a):
        ids = [
            self._create(api, school_a, name=name, start_date=f"{year}-09-01",
                         end_date=f"{year + 1}-07-31").get_json()["session"]["id"]
            for name, year in (("2023", 2023), ("2024", 2024))
        ]
        response = api.post("/api/academic-sessions/bulk-delete", json={"ids": ids}, headers=_headers(school_a))
        assert response.get_json() == {"deleted": 2}

        response = api.post("/api/academic-sessions/bulk-delete", json={"ids": ["x"]}, headers=_headers(school_a))
        assert response.status_code == 400


class TestIdentifiersApi:
    def test_generate_and_peek(self, api, defaults, school_a):
        response = api.post("/api/identifiers/student_id", json={"year": 2025}, headers=_headers(school_a))
        assert response.status_code == 201
        assert response.get_json()["identifier"] == "STD-2025-000001"

        peek = api.get("/api/identifiers/student_id/next?year=2025", headers=_headers(school_a)).get_json()
        assert peek["next_sequence"] == 2

    def test_generate_requires_tenant(self, api, defaults):
        assert api.post("/api/identifiers/student_id", json={"year": 2025}).status_code == 400

    def test_invalid_type(self, api, defaults, school_a):
        response = api.post("/api/identifiers/Student-ID", json={"year": 2025}, headers=_headers(school_a))
        assert response.status_code == 400
