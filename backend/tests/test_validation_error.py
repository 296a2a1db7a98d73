from fastapi.testclient import TestClient

from capquote.main import app


def test_estimate_missing_quantity():
    client = TestClient(app)
    response = client.post("/api/v1/pricing/estimate", json={"tier": "Tier 2"})
    assert response.status_code == 422
    data = response.json()
    assert any(err["loc"][-1] == "quantity" for err in data["detail"])


def test_merge_rejects_unknown_list_op():
    client = TestClient(app)
    response = client.post(
        "/api/v1/quotes/merge",
        json={"delta": {"accessories": [{"op": "SHUFFLE", "items": []}]}},
    )
    assert response.status_code == 422
