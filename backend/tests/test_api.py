from __future__ import annotations

import math
from unittest import TestCase

from fastapi.testclient import TestClient

from tests.support import make_session_factory, make_settings
from vitalstore.core.errors import (
    AlreadyExistsError,
    NotFoundError,
    ParseError,
    StorageError,
    UnknownCalculationError,
)
from vitalstore.main import create_app, status_for_error


class ErrorMappingTests(TestCase):
    def test_status_codes(self) -> None:
        self.assertEqual(status_for_error(NotFoundError("metric", 1)), 404)
        self.assertEqual(status_for_error(AlreadyExistsError("metric", "code", "tg")), 409)
        self.assertEqual(status_for_error(ParseError(metric_id=1, value="x")), 422)
        self.assertEqual(status_for_error(UnknownCalculationError("nope_v1")), 500)
        self.assertEqual(status_for_error(StorageError("down")), 503)


class ApiTests(TestCase):
    def setUp(self) -> None:
        app = create_app(settings=make_settings(), session_factory=make_session_factory())
        self.client = TestClient(app)
        self.client.__enter__()
        self.addCleanup(self.client.__exit__, None, None, None)

    def _create_metric(self, code: str, value_type: str = "decimal") -> int:
        response = self.client.post(
            "/api/metrics",
            json={"code": code, "name": code.upper(), "unit": "mmol/L", "value_type": value_type},
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()["id"]

    def _create_subject(self) -> int:
        response = self.client.post("/api/subjects", json={"kind": "user"})
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()["id"]

    def _record(self, subject_id: int, metric_id: int, value: str, observed_at: str) -> dict:
        response = self.client.post(
            "/api/observations",
            json={
                "subject_id": subject_id,
                "metric_id": metric_id,
                "value": value,
                "observed_at": observed_at,
            },
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def test_health_and_status(self) -> None:
        self.assertEqual(self.client.get("/health").json()["status"], "ok")

        status = self.client.get("/status").json()
        self.assertTrue(status["database"]["ok"])
        self.assertEqual(status["derived_row_policy"], "skip")
        self.assertIn("tyg_v1", status["calculations"])

    def test_tyg_end_to_end(self) -> None:
        subject_id = self._create_subject()
        tg = self._create_metric("tg")
        fpg = self._create_metric("fpg")
        self._record(subject_id, tg, "1.7", "2024-01-01T00:00:00Z")
        self._record(subject_id, fpg, "5.4", "2024-01-01T00:00:00Z")
        created = self.client.post(
            "/api/recipes",
            json={
                "kind": "derived",
                "deps": [tg, fpg],
                "calc_key": "tyg_v1",
                "arg_map": {"tg": tg, "fpg": fpg},
                "expr": {"op": "ln", "args": [{"op": "mul", "args": ["tg", "fpg"]}]},
                "code": "tyg_index",
                "name": "TyG index",
                "unit": "index",
                "value_type": "float",
                "visualization": "line_chart",
                "status": "active",
            },
        )
        self.assertEqual(created.status_code, 201, created.text)
        recipe_id = created.json()["id"]

        response = self.client.get(
            "/api/observations/derived",
            params={"subject_id": subject_id, "recipe_id": recipe_id},
        )

        self.assertEqual(response.status_code, 200, response.text)
        body = response.json()
        self.assertEqual(body["definition"]["calc_key"], "tyg_v1")
        self.assertEqual(len(body["points"]), 1)
        self.assertAlmostEqual(body["points"][0]["numeric"], math.log(1.7 * 5.4), places=9)
        self.assertEqual(body["skipped"], [])

    def test_series_range_and_numeric_projection(self) -> None:
        subject_id = self._create_subject()
        metric_id = self._create_metric("glucose")
        self._record(subject_id, metric_id, "5.1", "2024-01-01T08:00:00Z")
        self._record(subject_id, metric_id, "n/a", "2024-01-02T08:00:00Z")
        self._record(subject_id, metric_id, "5.6", "2024-01-03T08:00:00Z")

        response = self.client.get(
            "/api/observations/series",
            params={
                "subject_id": subject_id,
                "metric_id": metric_id,
                "from": "2024-01-01T08:00:00Z",
                "to": "2024-01-02T08:00:00Z",
            },
        )

        self.assertEqual(response.status_code, 200, response.text)
        points = response.json()["points"]
        self.assertEqual([point["value"] for point in points], ["5.1", "n/a"])
        self.assertEqual([point["numeric"] for point in points], [5.1, None])

    def test_inverted_range_is_unprocessable(self) -> None:
        subject_id = self._create_subject()
        metric_id = self._create_metric("glucose")

        response = self.client.get(
            "/api/observations/series",
            params={"subject_id": subject_id, "metric_id": metric_id, "from": "2024-02-01T00:00:00Z", "to": "2024-01-01T00:00:00Z"},
        )

        self.assertEqual(response.status_code, 422)

    def test_observation_with_inline_source(self) -> None:
        subject_id = self._create_subject()
        metric_id = self._create_metric("weight")

        response = self.client.post(
            "/api/observations",
            json={
                "subject_id": subject_id,
                "metric_id": metric_id,
                "value": 72.5,
                "observed_at": "2024-01-01T07:00:00",
                "source": {"kind": "device", "name": "Scale"},
            },
        )

        self.assertEqual(response.status_code, 201, response.text)
        body = response.json()
        self.assertEqual(body["value"], "72.5")
        self.assertEqual(body["source"]["name"], "Scale")
        self.assertEqual(body["source_id"], body["source"]["id"])

    def test_record_for_unknown_metric_is_404(self) -> None:
        subject_id = self._create_subject()

        response = self.client.post(
            "/api/observations",
            json={"subject_id": subject_id, "metric_id": 404, "value": "1", "observed_at": "2024-01-01T00:00:00Z"},
        )

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"], "NotFoundError")

    def test_duplicate_metric_code_is_conflict(self) -> None:
        self._create_metric("tg")

        response = self.client.post(
            "/api/metrics",
            json={"code": "tg", "name": "Again", "value_type": "decimal"},
        )

        self.assertEqual(response.status_code, 409)

    def test_primitive_recipe_with_calc_key_is_rejected(self) -> None:
        metric_id = self._create_metric("tg")

        response = self.client.post(
            "/api/recipes",
            json={"kind": "primitive", "deps": [metric_id], "calc_key": "tyg_v1"},
        )

        self.assertEqual(response.status_code, 422)
        self.assertIn("calc_key", response.json()["detail"])

    def test_unknown_calculation_at_creation_is_422(self) -> None:
        tg = self._create_metric("tg")
        fpg = self._create_metric("fpg")

        response = self.client.post(
            "/api/recipes",
            json={
                "kind": "derived",
                "deps": [tg, fpg],
                "calc_key": "tyg_v9",
                "code": "tyg9",
                "name": "TyG 9",
                "unit": "index",
                "value_type": "float",
                "visualization": "line_chart",
                "status": "active",
            },
        )

        self.assertEqual(response.status_code, 422)

    def test_selectable_listings(self) -> None:
        keep = self._create_metric("tg")
        drop = self._create_metric("legacy")
        deprecated = self.client.post(f"/api/metrics/{drop}/deprecate")
        self.assertEqual(deprecated.json()["status"], "deprecated")
        self.client.post("/api/recipes", json={"kind": "primitive", "deps": [keep]})

        metrics = self.client.get("/api/metrics/selectable").json()
        recipes = self.client.get("/api/recipes/selectable").json()

        self.assertEqual([metric["id"] for metric in metrics], [keep])
        self.assertEqual(recipes, [])

    def test_metric_pagination_is_normalized(self) -> None:
        for index in range(3):
            self._create_metric(f"m{index}")

        body = self.client.get("/api/metrics", params={"page": 0, "page_size": 0}).json()

        self.assertEqual(body["page"], 1)
        self.assertEqual(body["page_size"], 20)
        self.assertEqual(body["total"], 3)
        self.assertFalse(body["has_next"])

    def test_non_string_text_fields_are_unprocessable(self) -> None:
        self.assertEqual(self.client.post("/api/subjects", json={"kind": 5}).status_code, 422)
        self.assertEqual(
            self.client.post("/api/data-sources", json={"kind": "manual", "name": ["Diary"]}).status_code,
            422,
        )
        self.assertEqual(
            self.client.post("/api/metrics", json={"code": 7, "name": "Seven", "value_type": "float"}).status_code,
            422,
        )
        self.assertEqual(
            self.client.post(
                "/api/metrics",
                json={"code": "seven", "name": "Seven", "unit": 7, "value_type": "float"},
            ).status_code,
            422,
        )

    def test_value_type_aliases_on_create(self) -> None:
        metric = self.client.post("/api/metrics", json={"code": "steps", "name": "Steps", "value_type": "int"})
        self.assertEqual(metric.status_code, 201, metric.text)
        self.assertEqual(metric.json()["value_type"], "integer")
        other = self._create_metric("floors", "integer")

        recipe = self.client.post(
            "/api/recipes",
            json={
                "kind": "derived",
                "deps": [metric.json()["id"], other],
                "calc_key": "non_hdl_c_v1",
                "code": "steps_minus_floors",
                "name": "Steps minus floors",
                "unit": "count",
                "value_type": "int",
                "visualization": "line_chart",
                "status": "active",
            },
        )

        self.assertEqual(recipe.status_code, 201, recipe.text)
        self.assertEqual(recipe.json()["value_type"], "integer")

    def test_subject_and_data_source_endpoints(self) -> None:
        subject_id = self._create_subject()
        source = self.client.post("/api/data-sources", json={"kind": "manual", "name": "Diary"})

        self.assertEqual(self.client.get(f"/api/subjects/{subject_id}").json()["kind"], "user")
        self.assertEqual(self.client.get("/api/subjects/404").status_code, 404)
        self.assertEqual(source.status_code, 201)
        self.assertEqual(self.client.get("/api/data-sources").json()["total"], 1)
