from unittest.mock import patch, AsyncMock


def test_ready_reports_redis_and_db(client):
    response = client.get("/api/ready")
    assert response.status_code == 200
    assert response.json() == {"ok": True, "redis_ok": True, "db_ok": True}


def test_ready_survives_redis_outage(client):
    with patch("nosh.infra.redis_client.get_redis", new=AsyncMock(side_effect=ConnectionError("down"))):
        body = client.get("/api/ready").json()
    assert body["ok"] is True
    assert body["redis_ok"] is False
    assert body["db_ok"] is True
