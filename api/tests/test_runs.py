"""Tests for the run and pipeline routes."""

from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from api.src.main import app

client = TestClient(app)

PIPELINE = {
    "id": "p1",
    "name": "Demo",
    "items": [
        {"id": "n1", "type": "block", "blockId": "connect_block"},
        {
            "id": "l1",
            "type": "loop",
            "loopCount": 2,
            "children": [{"id": "n2", "type": "block", "blockId": "my_block"}],
        },
    ],
}

MY_BLOCK = {"id": "my_block", "name": "Mine", "type": "custom", "commands": ["echo $(loop_index)"]}

def test_health():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"

def test_create_run_enqueues_job():
    with patch("api.src.routes.runs.enqueue_run", new_callable=AsyncMock) as enqueue:
        response = client.post("/api/runs", json={"pipeline": PIPELINE, "blocks": [MY_BLOCK]})

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "queued"
    assert body["total_steps"] == 3

    job = enqueue.call_args.args[0]
    assert job.run_id == body["run_id"]
    assert job.pipeline.id == "p1"
    assert job.blocks[0].id == "my_block"

def test_create_run_rejects_unknown_block():
    with patch("api.src.routes.runs.enqueue_run", new_callable=AsyncMock) as enqueue:
        response = client.post("/api/runs", json={"pipeline": PIPELINE})

    assert response.status_code == 422
    assert "my_block" in response.json()["detail"]
    enqueue.assert_not_called()

def test_stop_running_run():
    with patch("api.src.routes.runs.get_run_status", new_callable=AsyncMock, return_value="running"), \
         patch("api.src.routes.runs.request_stop", new_callable=AsyncMock) as request_stop:
        response = client.post("/api/runs/r1/stop")

    assert response.status_code == 200
    assert response.json() == {"run_id": "r1", "status": "stopping"}
    request_stop.assert_awaited_once_with("r1")

def test_stop_unknown_run():
    with patch("api.src.routes.runs.get_run_status", new_callable=AsyncMock, return_value=None):
        response = client.post("/api/runs/missing/stop")

    assert response.status_code == 404

def test_stop_finished_run():
    with patch("api.src.routes.runs.get_run_status", new_callable=AsyncMock, return_value="completed"), \
         patch("api.src.routes.runs.request_stop", new_callable=AsyncMock) as request_stop:
        response = client.post("/api/runs/r1/stop")

    assert response.status_code == 409
    request_stop.assert_not_called()

def test_get_run_status():
    document = {
        "completed_steps": 1,
        "total_steps": 3,
        "stats": {"n1": {"startTime": 1, "endTime": 2, "duration": 1, "status": "success"}},
    }
    with patch("api.src.routes.runs.get_run_status", new_callable=AsyncMock, return_value="running"), \
         patch("api.src.routes.runs.get_run_stats", new_callable=AsyncMock, return_value=document):
        response = client.get("/api/runs/r1")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "running"
    assert body["completed_steps"] == 1
    assert body["total_steps"] == 3
    assert body["stats"]["n1"]["status"] == "success"

def test_get_run_logs():
    with patch("api.src.routes.runs.get_run_status", new_callable=AsyncMock, return_value="completed"), \
         patch("api.src.routes.runs.get_run_logs", new_callable=AsyncMock, return_value=["Starting Pipeline: Demo"]):
        response = client.get("/api/runs/r1/logs")

    assert response.status_code == 200
    assert response.json()["logs"] == ["Starting Pipeline: Demo"]

def test_validate_pipeline_content():
    content = """
name: Loop
items:
  - id: l1
    type: loop
    loopCount: 4
    children:
      - id: n1
        type: block
        blockId: enter_block
"""
    response = client.post("/api/pipelines/validate", json={"content": content})

    assert response.status_code == 200
    body = response.json()
    assert body["valid"] is True
    assert body["total_steps"] == 4
    assert body["pipeline"]["items"][0]["loopCount"] == 4

def test_validate_pipeline_error():
    response = client.post("/api/pipelines/validate", json={"pipeline": {"name": "No items"}})

    assert response.status_code == 422
    assert "items" in response.json()["detail"]
