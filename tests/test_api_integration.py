"""
Integration tests for API endpoints.

Tests the full HTTP request/response cycle against an in-memory dataset.
"""
import csv
import io
import pytest

from blightmap.infrastructure.tree_data_loader import TreeDataLoader


# ============================================================
# Health Check Tests
# ============================================================

class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_root_endpoint(self, test_client):
        """Root endpoint should return healthy status."""
        response = test_client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "service" in data
        assert "version" in data

    def test_health_endpoint(self, test_client):
        """Health endpoint should report loaded data."""
        response = test_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["data_loaded"] is True
        assert data["observations"] == 8

    def test_health_without_data(self, unloaded_client):
        response = unloaded_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "degraded"
        assert data["data_loaded"] is False


# ============================================================
# Tree Endpoint Tests
# ============================================================

class TestTreeEndpoints:
    """Tests for the tree observation endpoints."""

    def test_list_trees_for_year(self, test_client):
        response = test_client.get("/api/v1/trees", params={"year": 2024})

        assert response.status_code == 200
        data = response.json()
        assert data["year"] == 2024
        assert data["count"] == 4
        first = data["trees"][0]
        assert first["tree_id"] == "A1"
        assert first["condition"] == "Dead"
        assert first["condition_label"] == "枯死"

    def test_list_trees_filtered(self, test_client):
        response = test_client.get(
            "/api/v1/trees",
            params={"problematic_only": "true", "species": "ケヤキ"},
        )

        assert response.status_code == 200
        assert {t["tree_id"] for t in response.json()["trees"]} == {"A1", "A3"}
        assert response.json()["count"] == 3

    def test_list_trees_by_condition(self, test_client):
        response = test_client.get(
            "/api/v1/trees",
            params=[("condition", "Dead"), ("condition", "Withering")],
        )

        assert response.status_code == 200
        assert response.json()["count"] == 2

    def test_invalid_condition(self, test_client):
        response = test_client.get("/api/v1/trees", params={"condition": "Burnt"})

        assert response.status_code == 422

    def test_years(self, test_client):
        response = test_client.get("/api/v1/trees/years")

        assert response.status_code == 200
        assert response.json() == {"years": [2023, 2024]}

    def test_latest(self, test_client):
        response = test_client.get("/api/v1/trees/latest")

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 4
        assert all(t["year"] == 2024 for t in data["trees"])

    def test_no_data_returns_503(self, unloaded_client):
        response = unloaded_client.get("/api/v1/trees")

        assert response.status_code == 503
        assert response.json()["error"] == "Failed to load data"


# ============================================================
# Reload Endpoint Tests
# ============================================================

class TestReloadEndpoint:
    """Tests for dataset reloads."""

    def test_reload_success(self, test_client, loaded_repository, sample_csv_text, tmp_path):
        path = tmp_path / "trees.csv"
        path.write_text(sample_csv_text, encoding="utf-8")
        loaded_repository._loader = TreeDataLoader(source=str(path))

        response = test_client.post("/api/v1/trees/reload")

        assert response.status_code == 200
        assert response.json() == {"loaded": 24, "years": [2023, 2024]}

    def test_reload_failure_keeps_data(self, test_client, loaded_repository, tmp_path):
        loaded_repository._loader = TreeDataLoader(source=str(tmp_path / "missing.csv"))

        response = test_client.post("/api/v1/trees/reload")

        assert response.status_code == 503
        assert "Cannot read tree data file" in response.json()["detail"]
        assert test_client.get("/api/v1/trees").json()["count"] == 8


# ============================================================
# Cluster Endpoint Tests
# ============================================================

class TestClusterEndpoint:
    """Tests for the outbreak cluster endpoint."""

    def test_default_clusters(self, test_client):
        response = test_client.get("/api/v1/clusters")

        assert response.status_code == 200
        data = response.json()
        assert data["year"] == 2024
        assert data["algorithm"] == "circle_union"
        assert data["cluster_count"] == 1
        assert data["affected_tree_count"] == 3
        cluster = data["clusters"][0]
        assert cluster["id"] == "cluster-0"
        assert cluster["severity"] == "dead"
        assert sorted(cluster["tree_ids"]) == ["A1", "A2", "A3"]
        assert len(cluster["circles"]) == 3
        assert cluster["bounding_circle"] is not None
        assert cluster["polygon"] is None

    def test_clusters_with_polygons(self, test_client):
        response = test_client.get(
            "/api/v1/clusters",
            params={"year": 2024, "include_polygons": "true"},
        )

        assert response.status_code == 200
        polygon = response.json()["clusters"][0]["polygon"]
        assert len(polygon) == 3 * 8
        assert {"latitude", "longitude"} <= set(polygon[0])

    def test_density_clusters(self, test_client):
        response = test_client.get(
            "/api/v1/clusters",
            params={"year": 2024, "algorithm": "density"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["cluster_count"] == 0
        assert data["overlap_threshold"] is None

    def test_single_pest_tree_forms_cluster(self, test_client):
        response = test_client.get("/api/v1/clusters", params={"year": 2023})

        assert response.status_code == 200
        assert response.json()["cluster_count"] == 1
        assert response.json()["clusters"][0]["severity"] == "pest"

    @pytest.mark.parametrize("params", [
        {"radius_m": 0},
        {"radius_m": 500},
        {"overlap_threshold": 0},
        {"overlap_threshold": 1},
        {"algorithm": "kmeans"},
    ])
    def test_invalid_parameters(self, test_client, params):
        response = test_client.get("/api/v1/clusters", params=params)

        assert response.status_code == 422


# ============================================================
# Statistics Endpoint Tests
# ============================================================

class TestStatisticsEndpoint:
    """Tests for the statistics endpoint."""

    def test_statistics(self, test_client):
        response = test_client.get("/api/v1/statistics")

        assert response.status_code == 200
        data = response.json()
        assert data["selected"]["year"] == 2024
        assert data["selected"]["problem_count"] == 3
        assert data["selected"]["healthy_rate"] == 25.0
        assert [s["year"] for s in data["yearly"]] == [2023, 2024]

    def test_statistics_for_year(self, test_client):
        response = test_client.get("/api/v1/statistics", params={"year": 2023})

        assert response.json()["selected"]["healthy"] == 3


# ============================================================
# Export Endpoint Tests
# ============================================================

class TestExportEndpoints:
    """Tests for the export endpoints."""

    def test_csv_export(self, test_client):
        response = test_client.get("/api/v1/export/csv", params={"year": 2024})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "tree_data_2024.csv" in response.headers["content-disposition"]
        assert response.content.startswith(b"\xef\xbb\xbf")

    def test_geojson_export(self, test_client):
        response = test_client.get("/api/v1/export/geojson")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/geo+json")
        data = response.json()
        assert data["type"] == "FeatureCollection"
        assert data["metadata"]["year"] == 2024
        assert "tree_disease_data_2024.geojson" in response.headers["content-disposition"]

    def test_wkt_export(self, test_client):
        response = test_client.get("/api/v1/export/clusters-wkt", params={"year": 2024})

        assert response.status_code == 200
        assert "POLYGON" in response.text

    def test_report_export(self, test_client):
        response = test_client.get("/api/v1/export/report", params={"year": 2024})

        assert response.status_code == 200
        assert response.text.startswith("Tree Health Report - 2024")

    @pytest.mark.parametrize("threshold, expected", [(0.1, 2), (0.9, 3)])
    def test_exports_follow_overlap_threshold(self, test_client, threshold, expected):
        """At r=5 m the A2-A3 pair (~9 m) merges only under the lower threshold."""
        params = {"year": 2024, "radius_m": 5, "overlap_threshold": threshold}

        clusters = test_client.get("/api/v1/clusters", params=params).json()
        geojson = test_client.get("/api/v1/export/geojson", params=params).json()
        wkt_rows = list(csv.reader(io.StringIO(
            test_client.get("/api/v1/export/clusters-wkt", params=params).text.lstrip("\ufeff")
        )))
        report = test_client.get("/api/v1/export/report", params=params).text

        assert clusters["cluster_count"] == expected
        assert geojson["metadata"]["totalClusters"] == expected
        assert len(wkt_rows) - 1 == expected
        assert f"- Clusters detected: {expected}" in report

    def test_exports_apply_species_filter(self, test_client):
        params = {"year": 2024, "species": "ケヤキ"}

        clusters = test_client.get("/api/v1/clusters", params=params).json()
        geojson = test_client.get("/api/v1/export/geojson", params=params).json()
        report = test_client.get("/api/v1/export/report", params=params).text

        assert clusters["cluster_count"] == 1
        assert sorted(clusters["clusters"][0]["tree_ids"]) == ["A1", "A3"]
        assert geojson["metadata"]["totalTrees"] == 2
        assert geojson["metadata"]["totalClusters"] == 1
        assert "cluster-0: 2 trees" in report

    @pytest.mark.parametrize("path", ["geojson", "clusters-wkt", "report"])
    def test_export_rejects_invalid_threshold(self, test_client, path):
        response = test_client.get(f"/api/v1/export/{path}", params={"overlap_threshold": 1})

        assert response.status_code == 422


# ============================================================
# Response Format Tests
# ============================================================

class TestResponseFormats:
    """Tests for API response formats."""

    def test_openapi_schema_available(self, test_client):
        """OpenAPI schema should be available."""
        response = test_client.get("/openapi.json")

        assert response.status_code == 200
        data = response.json()
        assert "openapi" in data
        assert "paths" in data
        assert "/api/v1/clusters" in data["paths"]
        assert "/api/v1/trees/reload" in data["paths"]

    def test_docs_endpoint_available(self, test_client):
        """Swagger docs should be available."""
        response = test_client.get("/docs")

        assert response.status_code == 200
        assert "swagger" in response.text.lower() or "html" in response.headers.get("content-type", "")

    def test_redoc_endpoint_available(self, test_client):
        """ReDoc should be available."""
        response = test_client.get("/redoc")

        assert response.status_code == 200


# ============================================================
# CORS Tests
# ============================================================

class TestCORS:
    """Tests for CORS configuration."""

    def test_cors_headers_present(self, test_client):
        """CORS headers should be present for cross-origin requests."""
        response = test_client.options(
            "/api/v1/clusters",
            headers={
                "Origin": "http://example.com",
                "Access-Control-Request-Method": "GET",
            }
        )

        # CORS preflight should succeed
        assert response.status_code in [200, 405, 400]  # Depends on CORS config


# ============================================================
# Rate Limiting Tests
# ============================================================

class TestRateLimiting:
    """Tests for rate limiting functionality."""

    def test_rate_limit_documented_in_openapi(self, test_client):
        """Rate limit should be documented in OpenAPI."""
        response = test_client.get("/openapi.json")

        assert response.status_code == 200
        data = response.json()

        # Check that 429 response is documented
        clusters_path = data["paths"]["/api/v1/clusters"]
        assert "429" in clusters_path["get"]["responses"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
