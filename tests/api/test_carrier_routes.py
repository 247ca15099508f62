"""Tests for the dev-server routes with the outbound HTTP client mocked."""

import base64

import pytest
from fastapi.testclient import TestClient

from shopickup import __version__
from shopickup.api.dependencies import get_config, get_http_client
from shopickup.api.main import create_app, http_status_for_error
from shopickup.config import ShopickupConfig
from shopickup.errors.carrier import CarrierError, ErrorCategory, NotImplementedCapabilityError

FOXPOST_CREDS = {"apiKey": "fox-key", "basicUsername": "user", "basicPassword": "pass"}
GLS_CREDS = {"username": "user@example.hu", "password": "s3cret", "clientNumberList": [100000001]}
MPL_CREDS = {"oAuth2Token": "tok", "accountingCode": "ACC1"}


@pytest.fixture
def app(http):
    """Fresh application whose adapters talk to the mocked HttpClient."""
    application = create_app()
    application.dependency_overrides[get_http_client] = lambda: http
    application.dependency_overrides[get_config] = lambda: ShopickupConfig(server={"tracing": False})
    return application


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def parcel_json(make_parcel):
    def _dump(parcel_id: str = "P1", **kwargs) -> dict:
        return make_parcel(parcel_id, **kwargs).model_dump(mode="json", by_alias=True, exclude_none=True)

    return _dump


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "version": __version__, "carriers": ["foxpost", "gls", "mpl"]}


class TestBatchStatus:
    """Batch routes answer 200, 207 or 400 from the envelope."""

    def test_all_created_is_200(self, client, http, ok_response, parcel_json):
        http.post.return_value = ok_response({
            "valid": True,
            "parcels": [{"clFoxId": "CLFOX0001"}, {"clFoxId": "CLFOX0002"}],
        })
        resp = client.post("/api/v1/foxpost/parcels", json={
            "parcels": [parcel_json("P1"), parcel_json("P2")],
            "credentials": FOXPOST_CREDS,
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["successCount"] == 2
        assert data["allSucceeded"] is True
        assert [r["carrierId"] for r in data["results"]] == ["CLFOX0001", "CLFOX0002"]

    def test_partial_is_207(self, client, http, ok_response, parcel_json):
        http.post.return_value = ok_response({
            "valid": False,
            "parcels": [{"clFoxId": "CLFOX0001"}, {"errors": [{"field": "recipientZip", "message": "INVALID_ZIP"}]}],
        })
        resp = client.post("/api/v1/foxpost/parcels", json={
            "parcels": [parcel_json("P1"), parcel_json("P2")],
            "credentials": FOXPOST_CREDS,
        })
        assert resp.status_code == 207
        assert resp.json()["results"][1]["errors"][0]["code"] == "INVALID_ZIP"

    def test_all_failed_is_400(self, client, http, error_response, parcel_json):
        http.post.side_effect = error_response(503)
        resp = client.post("/api/v1/foxpost/parcels", json={
            "parcels": [parcel_json("P1")],
            "credentials": FOXPOST_CREDS,
        })
        assert resp.status_code == 400
        data = resp.json()
        assert data["allFailed"] is True
        assert data["rawCarrierResponse"] is None
        assert data["results"][0]["errors"][0]["code"] == "HTTP_503"

    def test_empty_batch_is_207(self, client, http):
        resp = client.post("/api/v1/gls/parcels", json={"parcels": [], "credentials": GLS_CREDS})
        assert resp.status_code == 207
        assert resp.json()["totalCount"] == 0
        http.post.assert_not_awaited()

    def test_invalid_credentials_answer_400(self, client, http, parcel_json):
        resp = client.post("/api/v1/foxpost/parcels", json={
            "parcels": [parcel_json("P1")],
            "credentials": {"apiKey": "only"},
        })
        assert resp.status_code == 400
        assert resp.json()["carrierCode"] == "INVALID_CREDENTIALS"
        http.post.assert_not_awaited()


class TestSingleItemErrors:
    """CarrierError raised by single-item routes maps to a status by category."""

    @pytest.mark.parametrize(
        "category,status",
        [
            (ErrorCategory.VALIDATION, 400),
            (ErrorCategory.AUTH, 401),
            (ErrorCategory.RATE_LIMIT, 429),
            (ErrorCategory.TRANSIENT, 503),
            (ErrorCategory.PERMANENT, 502),
        ],
    )
    def test_status_for_category(self, category, status):
        assert http_status_for_error(CarrierError("x", category)) == status

    def test_rate_limit_sets_retry_after(self, client, http, error_response):
        http.get.side_effect = error_response(429, headers={"Retry-After": "30"})
        resp = client.post("/api/v1/foxpost/track", json={"trackingNumber": "CLFOX0001", "credentials": FOXPOST_CREDS})
        assert resp.status_code == 429
        assert resp.headers["retry-after"] == "30"
        body = resp.json()
        assert body["category"] == "RateLimit"
        assert body["retryAfterMs"] == 30_000
        assert body["retryable"] is True

    def test_zero_retry_after_is_forwarded(self, client, http, error_response):
        http.get.side_effect = error_response(429, headers={"Retry-After": "0"})
        resp = client.post("/api/v1/foxpost/track", json={"trackingNumber": "CLFOX0001", "credentials": FOXPOST_CREDS})
        assert resp.status_code == 429
        assert resp.headers["retry-after"] == "0"
        assert resp.json()["retryAfterMs"] == 0

    def test_rejected_parcel_is_400(self, client, http, ok_response, parcel_json):
        http.post.return_value = ok_response({
            "valid": False,
            "parcels": [{"errors": [{"field": "recipientZip", "message": "INVALID_ZIP"}]}],
        })
        resp = client.post("/api/v1/foxpost/parcel", json={"parcel": parcel_json("P1"), "credentials": FOXPOST_CREDS})
        assert resp.status_code == 400
        assert resp.json()["carrierCode"] == "INVALID_ZIP"

    def test_created_parcel(self, client, http, ok_response, parcel_json):
        http.post.return_value = ok_response({"valid": True, "parcels": [{"clFoxId": "CLFOX0001"}]})
        resp = client.post("/api/v1/foxpost/parcel", json={"parcel": parcel_json("P1"), "credentials": FOXPOST_CREDS})
        assert resp.status_code == 200
        assert resp.json()["carrierId"] == "CLFOX0001"
        assert resp.json()["inputId"] == "P1"

    def test_unknown_tracking_number(self, client, http, ok_response):
        http.post.return_value = ok_response({
            "getParcelStatusErrors": [{"errorCode": 4, "errorDescription": "Parcel not found"}],
        })
        resp = client.post("/api/v1/gls/track", json={"trackingNumber": "9001", "credentials": GLS_CREDS})
        assert resp.status_code == 400
        assert resp.json()["carrierCode"] == "NOT_FOUND"

    def test_request_body_validated(self, client):
        resp = client.post("/api/v1/gls/track", json={"credentials": GLS_CREDS})
        assert resp.status_code == 422


class TestLabels:
    def test_content_only_on_request(self, client, http, ok_response):
        http.post.return_value = ok_response(b"%PDF-1.7 fake")
        payload = {"parcelCarrierIds": ["CLFOX0001"], "credentials": FOXPOST_CREDS}

        resp = client.post("/api/v1/foxpost/labels", json=payload)
        assert resp.status_code == 200
        assert "contentBase64" not in resp.json()["files"][0]
        assert "content" not in resp.json()["files"][0]

        resp = client.post("/api/v1/foxpost/labels", params={"includeContent": "true"}, json=payload)
        label_file = resp.json()["files"][0]
        assert base64.b64decode(label_file["contentBase64"]) == b"%PDF-1.7 fake"
        assert resp.json()["results"][0]["fileId"] == label_file["id"]


class TestPickupPoints:
    def test_gls_pickup_points(self, client, http, ok_response):
        http.get.return_value = ok_response({"items": [{"id": "1011-CSOMAGPONT", "name": "Locker"}]})
        resp = client.post("/api/v1/gls/pickup-points", json={"options": {"country": "HU"}})
        assert resp.status_code == 200
        data = resp.json()
        assert data["totalCount"] == 1
        assert data["points"][0]["id"] == "1011-CSOMAGPONT"

    def test_mpl_pickup_points(self, client, http, ok_response):
        http.post.return_value = ok_response([{
            "deliveryplacesQueryResult": {"id": "1234", "deliveryplace": "Szeged 1 posta", "postCode": "6720"},
            "servicePointType": ["PM"],
        }])
        resp = client.post("/api/v1/mpl/pickup-points", json={
            "credentials": MPL_CREDS,
            "options": {"postCode": "6720"},
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["totalCount"] == 1
        assert data["points"][0]["postalCode"] == "6720"
        assert http.post.await_args.kwargs["json"]["deliveryPlacesQuery"]["postCode"] == "6720"

    def test_mpl_pickup_points_need_accounting_code(self, client, http):
        resp = client.post("/api/v1/mpl/pickup-points", json={"credentials": {"oAuth2Token": "tok"}})
        assert resp.status_code == 400
        assert resp.json()["carrierCode"] == "MISSING_ACCOUNTING_CODE"
        http.post.assert_not_awaited()


class TestMPLRoutes:
    def test_shipment_details(self, client, http, ok_response):
        http.get.return_value = ok_response({"shipment": {"trackingNumber": "JJH001", "orderId": "ORD-1"}})
        resp = client.post("/api/v1/mpl/shipment-details", json={"trackingNumber": "JJH001", "credentials": MPL_CREDS})
        assert resp.status_code == 200
        assert resp.json()["orderId"] == "ORD-1"

    def test_tracking_batch(self, client, http, ok_response):
        http.post.return_value = ok_response({"trackingGUID": "guid-1"})
        resp = client.post("/api/v1/mpl/tracking-batch", json={"trackingNumbers": ["T1"], "credentials": MPL_CREDS})
        assert resp.status_code == 200
        assert resp.json()["trackingGUID"] == "guid-1"

        http.get.return_value = ok_response({"status": "INPROGRESS"})
        resp = client.post("/api/v1/mpl/tracking-batch/check", json={"trackingGUID": "guid-1", "credentials": MPL_CREDS})
        assert resp.json()["status"] == "INPROGRESS"

    def test_track_registered_not_found(self, client, http, ok_response):
        http.get.return_value = ok_response({"trackAndTrace": [{"c1": "OTHER", "c10": "2026-03-01T08:00:00"}]})
        resp = client.post("/api/v1/mpl/track-registered", json={"trackingNumber": "T1", "credentials": MPL_CREDS})
        assert resp.status_code == 400
        assert resp.json()["carrierCode"] == "NOT_FOUND"
        assert http.get.await_args.args[0].endswith("/nyomkovetes/registered")


class TestNotImplemented:
    def test_missing_capability_is_501(self, app):
        @app.get("/unsupported")
        def unsupported():
            raise NotImplementedCapabilityError("LIST_PICKUP_POINTS", "mpl")

        resp = TestClient(app).get("/unsupported")
        assert resp.status_code == 501
        assert resp.json() == {
            "error": {
                "message": "Capability 'LIST_PICKUP_POINTS' is not implemented by adapter 'mpl'",
                "capability": "LIST_PICKUP_POINTS",
                "adapterId": "mpl",
            }
        }
