from conftest import PROJECT_ID, USER_ID

AUTH = {"x-user-id": USER_ID}


def test_list_project_tasks(client, backend):
    backend.add_task("t1", title="Ship it")
    backend.add_task("t2", title="Not mine", user_id="other")

    resp = client.get(f"/api/projects/{PROJECT_ID}/tasks", headers=AUTH)

    assert resp.status_code == 200
    assert [task["id"] for task in resp.json()] == ["t1"]


def test_task_summaries(client, backend):
    backend.add_task("t1", status="done")
    backend.add_task("t2", status="blocked")
    backend.add_task("t3", status="todo", project_id="other-project")

    resp = client.get(
        "/api/tasks/summary",
        params=[("project_ids", PROJECT_ID), ("project_ids", "empty-project")],
        headers=AUTH,
    )

    assert resp.json() == {
        PROJECT_ID: {"total": 2, "open": 1, "done": 1},
        "empty-project": {"total": 0, "open": 0, "done": 0},
    }


def test_update_task_status(client, backend):
    backend.add_task("t1")
    resp = client.patch("/api/tasks/t1", json={"status": "in_progress"}, headers=AUTH)
    assert resp.status_code == 200
    assert backend.tasks["t1"]["status"] == "in_progress"


def test_update_task_status_rejects_unknown_status(client, backend):
    backend.add_task("t1")
    resp = client.patch("/api/tasks/t1", json={"status": "finished"}, headers=AUTH)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid task status."


def test_delete_task_only_for_owner(client, backend):
    backend.add_task("t1", user_id="other")
    assert client.delete("/api/tasks/t1", headers=AUTH).status_code == 404
    assert "t1" in backend.tasks

    backend.add_task("t2")
    assert client.delete("/api/tasks/t2", headers=AUTH).status_code == 204
    assert "t2" not in backend.tasks


def test_autofill_fills_linked_node(client, backend):
    backend.add_project(
        PROJECT_ID,
        nodes=[
            {
                "id": "f1",
                "type": "feature",
                "position": {"x": 0, "y": 0},
                "data": {"featureName": "Login", "summary": "", "notes": "", "completed": False},
            }
        ],
    )
    backend.add_task(
        "t1",
        title="Feature: Login",
        details="Summary: Email & password sign in",
        node_id="f1",
        node_type="feature",
        metadata={"source": "agent"},
    )

    resp = client.post("/api/tasks/t1/autofill", headers=AUTH)

    assert resp.status_code == 200
    assert resp.json()["updated_fields"] == ["notes", "summary"]
    data = backend.projects[PROJECT_ID]["canvas_data"]["nodes"][0]["data"]
    assert data["summary"] == "Email &amp; password sign in"
    assert data["notes"] == "Task: Login"
    assert data["completed"] is False
    assert backend.tasks["t1"]["metadata"] == {
        "source": "agent",
        "autofill": {"node_id": "f1", "fields": ["notes", "summary"]},
    }


def test_autofill_requires_linked_task(client, backend):
    backend.add_task("t1")
    resp = client.post("/api/tasks/t1/autofill", headers=AUTH)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Task is not linked to a node."


def test_autofill_leaves_other_nodes_untouched(client, backend):
    long_summary = "&#x2F;" * 9000
    backend.add_project(
        PROJECT_ID,
        nodes=[
            {"id": "a", "type": "feature", "position": {"x": 0, "y": 0}, "data": {"featureName": "Login", "summary": ""}},
            {"id": "b", "type": "feature", "position": {"x": 1, "y": 0}, "data": {"featureName": "Paths", "summary": long_summary}},
        ],
    )
    backend.add_task("t1", title="Login", details="Summary: Sign in", node_id="a", node_type="feature")

    resp = client.post("/api/tasks/t1/autofill", headers=AUTH)

    assert resp.json()["updated_fields"] == ["summary"]
    nodes = backend.projects[PROJECT_ID]["canvas_data"]["nodes"]
    assert nodes[0]["data"]["summary"] == "Sign in"
    assert nodes[1]["data"]["summary"] == long_summary
