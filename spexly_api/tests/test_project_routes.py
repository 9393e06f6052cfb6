from conftest import PROJECT_ID, USER_ID

AUTH = {"x-user-id": USER_ID}


def _canvas_body():
    return {
        "nodes": [
            {"id": "n1", "type": "idea", "position": {"x": 0, "y": 0}, "data": {"appName": "<b>Spexly</b>"}},
            {"id": "n2", "type": "feature", "position": {"x": 100, "y": 0}, "data": {"featureName": "Login"}},
        ],
        "edges": [{"id": "e1", "source": "n1", "target": "n2"}],
    }


def test_save_canvas_sanitizes_and_replaces(client, backend):
    backend.add_project(PROJECT_ID, nodes=[{"id": "old"}])

    resp = client.put(f"/api/projects/{PROJECT_ID}/canvas", json=_canvas_body(), headers=AUTH)

    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "nodes": 2, "edges": 1}
    saved = backend.projects[PROJECT_ID]["canvas_data"]
    assert [n["id"] for n in saved["nodes"]] == ["n1", "n2"]
    assert saved["nodes"][0]["data"]["appName"] == "&lt;b&gt;Spexly&lt;&#x2F;b&gt;"


def test_save_canvas_rejects_invalid_graph(client, backend):
    backend.add_project(PROJECT_ID)
    body = _canvas_body()
    body["edges"] = [{"id": "e1", "source": "n1", "target": "n1"}]

    resp = client.put(f"/api/projects/{PROJECT_ID}/canvas", json=body, headers=AUTH)

    assert resp.status_code == 400
    assert resp.json() == {"ok": False, "error": "Invalid edge structure detected"}
    assert backend.projects[PROJECT_ID]["canvas_data"]["nodes"] == []


def test_save_canvas_requires_user(client, backend):
    backend.add_project(PROJECT_ID)
    resp = client.put(f"/api/projects/{PROJECT_ID}/canvas", json=_canvas_body())
    assert resp.status_code == 401


def test_save_canvas_hides_other_users_projects(client, backend):
    backend.add_project(PROJECT_ID, user_id="someone-else")
    resp = client.put(f"/api/projects/{PROJECT_ID}/canvas", json=_canvas_body(), headers=AUTH)
    assert resp.status_code == 404
    assert resp.json()["error"] == "Project not found"


def test_get_project_rejects_malformed_id(client, backend):
    resp = client.get("/api/projects/not-a-uuid", headers=AUTH)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid project ID format"


def test_create_and_rename_project(client, backend):
    created = client.post("/api/projects", json={"name": "  My Plan  "}, headers=AUTH)
    assert created.status_code == 201
    project = created.json()
    assert project["name"] == "My Plan"
    assert project["user_id"] == USER_ID

    renamed = client.patch(f"/api/projects/{project['id']}", json={"name": "Plan (v2)"}, headers=AUTH)
    assert renamed.status_code == 200
    assert backend.projects[project["id"]]["name"] == "Plan (v2)"


def test_create_project_defaults_name(client, backend):
    resp = client.post("/api/projects", json={}, headers=AUTH)
    assert resp.json()["name"] == "Untitled Project"


def test_rename_rejects_sql_keywords(client, backend):
    backend.add_project(PROJECT_ID)
    resp = client.patch(f"/api/projects/{PROJECT_ID}", json={"name": "DROP TABLE projects"}, headers=AUTH)
    assert resp.status_code == 400
    assert backend.projects[PROJECT_ID]["name"] == "Demo"
