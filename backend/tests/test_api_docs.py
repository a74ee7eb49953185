"""
OpenAPI document served at /api-docs.
"""

import re

import pytest

from storeapi.openapi import PATHS


def _openapi_path(rule: str) -> str:
    # Flask "<int:product_id>" -> OpenAPI "{product_id}"
    return re.sub(r"<(?:[^:<>]+:)?([^<>]+)>", r"{\1}", rule)


class TestApiDocs:
    def test_document(self, client):
        resp = client.get("/api-docs")

        assert resp.status_code == 200
        doc = resp.get_json()
        assert doc["openapi"] == "3.0.3"
        assert doc["info"]["title"] == "storeapi"
        assert "bearerAuth" in doc["components"]["securitySchemes"]
        assert "Sale" in doc["components"]["schemas"]

        delete = doc["paths"]["/api/products/{product_id}"]["delete"]
        assert set(delete["responses"]) == {"204", "404", "409"}

    def test_every_api_route_is_documented(self, app, client):
        documented = client.get("/api-docs").get_json()["paths"]

        for rule in app.url_map.iter_rules():
            if not rule.rule.startswith("/api/"):
                continue
            path = _openapi_path(rule.rule)
            assert path in documented, f"{rule.rule} missing from /api-docs"
            for method in rule.methods - {"HEAD", "OPTIONS"}:
                assert method.lower() in documented[path], f"{method} {rule.rule} missing from /api-docs"

    @pytest.mark.parametrize("path", sorted(PATHS))
    def test_documented_paths_exist(self, app, path):
        served = {_openapi_path(rule.rule) for rule in app.url_map.iter_rules()}
        assert path in served

    def test_root_redirects_to_docs(self, client):
        resp = client.get("/")

        assert resp.status_code == 302
        assert resp.headers["Location"].endswith("/api-docs")

    def test_docs_are_public(self, app, client, monkeypatch):
        monkeypatch.setitem(app.config, "API_TOKEN", "s3cret")

        assert client.get("/api-docs").status_code == 200
        assert client.get("/api/products").status_code == 401
