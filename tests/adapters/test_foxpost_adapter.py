"""Tests for the Foxpost adapter with a mocked HttpClient."""

import pytest

from shopickup.adapters.foxpost import FoxpostAdapter
from shopickup.adapters.foxpost.adapter import FOXPOST_APM_FEED_URL, FOXPOST_PROD_URL, FOXPOST_TEST_URL
from shopickup.adapters.foxpost.mappers import determine_size, map_parcel_to_foxpost
from shopickup.batch.aggregator import BatchOutcome, derive_batch_status
from shopickup.errors.carrier import CarrierError, ErrorCategory
from shopickup.models.domain import Dimensions, TrackingStatus
from shopickup.models.requests import (
    CreateLabelRequest,
    CreateLabelsRequest,
    CreateParcelRequest,
    CreateParcelsRequest,
    FetchPickupPointsRequest,
    RequestOptions,
    TrackingRequest,
)

CREDS = {"apiKey": "fox-key", "basicUsername": "user", "basicPassword": "pass"}


@pytest.fixture
def adapter():
    return FoxpostAdapter()


class TestCreateParcels:
    """POST /api/parcel."""

    @pytest.mark.asyncio
    async def test_all_created(self, adapter, ctx, http, make_parcel, ok_response):
        http.post.return_value = ok_response({
            "valid": True,
            "parcels": [
                {"clFoxId": "CLFOX0001", "refCode": "R1"},
                {"clFoxId": "CLFOX0002"},
            ],
        })
        req = CreateParcelsRequest(parcels=[make_parcel("P1"), make_parcel("P2")], credentials=CREDS)
        batch = await adapter.create_parcels(req, ctx)

        assert batch.all_succeeded
        assert [r.carrier_id for r in batch.results] == ["CLFOX0001", "CLFOX0002"]
        assert [r.input_id for r in batch.results] == ["P1", "P2"]
        assert batch.results[0].meta == {"refCode": "R1"}

        url = http.post.await_args.args[0]
        kwargs = http.post.await_args.kwargs
        assert url == f"{FOXPOST_PROD_URL}/api/parcel"
        assert kwargs["params"] == {"isWeb": "true", "isRedirect": "false"}
        assert kwargs["headers"]["Api-key"] == "fox-key"
        assert kwargs["headers"]["Authorization"].startswith("Basic ")
        assert len(kwargs["json"]) == 2

    @pytest.mark.asyncio
    async def test_partial_success(self, adapter, ctx, http, make_parcel, ok_response):
        http.post.return_value = ok_response({
            "valid": False,
            "parcels": [
                {"clFoxId": "CLFOX0001"},
                {"errors": [{"field": "recipientZip", "message": "INVALID_ZIP"}]},
            ],
        })
        req = CreateParcelsRequest(parcels=[make_parcel("P1"), make_parcel("P2")], credentials=CREDS)
        batch = await adapter.create_parcels(req, ctx)

        assert batch.some_failed
        assert derive_batch_status(batch) is BatchOutcome.PARTIAL_SUCCESS
        failed = batch.results[1]
        assert failed.input_id == "P2"
        assert failed.errors[0].field == "recipientZip"
        assert failed.errors[0].code == "INVALID_ZIP"

    @pytest.mark.asyncio
    async def test_top_level_errors_fail_whole_batch(self, adapter, ctx, http, make_parcel, ok_response):
        http.post.return_value = ok_response({
            "valid": False,
            "parcels": [],
            "errors": [{"field": "apiKey", "message": "INVALID_APM_ID"}],
        })
        req = CreateParcelsRequest(parcels=[make_parcel("P1"), make_parcel("P2")], credentials=CREDS)
        batch = await adapter.create_parcels(req, ctx)

        assert batch.all_failed
        assert all(r.errors[0].code == "INVALID_APM_ID" for r in batch.results)

    @pytest.mark.asyncio
    async def test_missing_item_in_response(self, adapter, ctx, http, make_parcel, ok_response):
        http.post.return_value = ok_response({"valid": True, "parcels": [{"clFoxId": "CLFOX0001"}]})
        req = CreateParcelsRequest(parcels=[make_parcel("P1"), make_parcel("P2")], credentials=CREDS)
        batch = await adapter.create_parcels(req, ctx)
        assert batch.results[1].errors[0].code == "MISSING_RESULT"

    @pytest.mark.asyncio
    async def test_http_error_fails_every_item(self, adapter, ctx, http, make_parcel, error_response):
        http.post.side_effect = error_response(401, {"error": "WRONG_USERNAME_OR_PASSWORD"})
        req = CreateParcelsRequest(parcels=[make_parcel("P1"), make_parcel("P2")], credentials=CREDS)
        batch = await adapter.create_parcels(req, ctx)
        assert batch.all_failed
        assert batch.raw_carrier_response == {"error": "WRONG_USERNAME_OR_PASSWORD"}
        assert batch.results[0].errors[0].code == "WRONG_USERNAME_OR_PASSWORD"

    @pytest.mark.asyncio
    async def test_test_mode_uses_sandbox(self, adapter, ctx, http, make_parcel, ok_response):
        http.post.return_value = ok_response({"valid": True, "parcels": [{"clFoxId": "CLFOX0001"}]})
        req = CreateParcelsRequest(
            parcels=[make_parcel("P1")],
            credentials=CREDS,
            options=RequestOptions(use_test_api=True),
        )
        await adapter.create_parcels(req, ctx)
        assert http.post.await_args.args[0] == f"{FOXPOST_TEST_URL}/api/parcel"
        assert http.post.await_args.kwargs["params"]["isWeb"] == "false"

    @pytest.mark.asyncio
    async def test_invalid_credentials_raise(self, adapter, ctx, http, make_parcel):
        req = CreateParcelsRequest(parcels=[make_parcel("P1")], credentials={"apiKey": "k"})
        with pytest.raises(CarrierError) as exc_info:
            await adapter.create_parcels(req, ctx)
        assert exc_info.value.category is ErrorCategory.VALIDATION
        http.post.assert_not_awaited()


class TestCreateParcel:
    @pytest.mark.asyncio
    async def test_item_error_raises_validation(self, adapter, ctx, http, make_parcel, ok_response):
        http.post.return_value = ok_response({
            "valid": False,
            "parcels": [{"errors": [{"field": "destination", "message": "INVALID_APM_ID"}]}],
        })
        with pytest.raises(CarrierError) as exc_info:
            await adapter.create_parcel(
                CreateParcelRequest(parcel=make_parcel("P1", pickup_point="bad"), credentials=CREDS), ctx
            )
        assert exc_info.value.category is ErrorCategory.VALIDATION
        assert exc_info.value.carrier_code == "INVALID_APM_ID"

    @pytest.mark.asyncio
    async def test_server_error_raises_transient(self, adapter, ctx, http, make_parcel, error_response):
        http.post.side_effect = error_response(503)
        with pytest.raises(CarrierError) as exc_info:
            await adapter.create_parcel(CreateParcelRequest(parcel=make_parcel("P1"), credentials=CREDS), ctx)
        assert exc_info.value.category is ErrorCategory.TRANSIENT
        assert exc_info.value.is_retryable()


class TestCreateLabels:
    """POST /api/label/{size}: one combined PDF, one page per barcode."""

    @pytest.mark.asyncio
    async def test_combined_pdf(self, adapter, ctx, http, ok_response):
        http.post.return_value = ok_response(b"%PDF-1.7 fake")
        req = CreateLabelsRequest(
            parcel_carrier_ids=["CLFOX0001", "CLFOX0002"],
            credentials=CREDS,
            options={"size": "A6", "isPortrait": False},
        )
        batch = await adapter.create_labels(req, ctx)

        assert batch.all_succeeded
        assert len(batch.files) == 1
        label_file = batch.files[0]
        assert label_file.pages == 2
        assert label_file.content == b"%PDF-1.7 fake"
        assert label_file.orientation == "landscape"
        assert [r.page_range.start for r in batch.results] == [1, 2]
        assert all(r.file_id == label_file.id for r in batch.results)

        assert http.post.await_args.args[0].endswith("/api/label/A6")
        assert http.post.await_args.kwargs["params"] == {"isPortrait": "false"}
        assert http.post.await_args.kwargs["response_type"] == "bytes"

    @pytest.mark.asyncio
    async def test_invalid_size_fails_batch(self, adapter, ctx, http):
        req = CreateLabelsRequest(parcel_carrier_ids=["CLFOX0001"], credentials=CREDS, options={"size": "A3"})
        batch = await adapter.create_labels(req, ctx)
        assert batch.all_failed
        assert batch.results[0].errors[0].code == "INVALID_LABEL_SIZE"
        http.post.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_non_pdf_body_fails_batch(self, adapter, ctx, http, ok_response):
        http.post.return_value = ok_response(b"<html>error</html>")
        batch = await adapter.create_labels(
            CreateLabelsRequest(parcel_carrier_ids=["CLFOX0001"], credentials=CREDS), ctx
        )
        assert batch.all_failed
        assert batch.raw_carrier_response == {"type": "bytes", "length": 18}

    @pytest.mark.asyncio
    async def test_single_label(self, adapter, ctx, http, ok_response):
        http.post.return_value = ok_response(b"%PDF-1.7")
        result = await adapter.create_label(
            CreateLabelRequest(parcel_carrier_id="CLFOX0001", credentials=CREDS), ctx
        )
        assert result.carrier_id == "CLFOX0001"
        assert result.page_range.end == 1


class TestTrack:
    @pytest.mark.asyncio
    async def test_events_oldest_first(self, adapter, ctx, http, ok_response):
        http.get.return_value = ok_response({
            "clFox": "CLFOX0001",
            "parcelType": "NORMAL",
            "traces": [
                {"status": "RECEIVE", "statusDate": "2026-03-03T10:00:00Z", "statusStationName": "Szeged"},
                {"status": "OPERIN", "statusDate": "2026-03-02T09:00:00Z"},
                {"status": "CREATE", "statusDate": "2026-03-01T08:00:00Z"},
            ],
        })
        update = await adapter.track(TrackingRequest(tracking_number="CLFOX0001", credentials=CREDS), ctx)

        assert [e.carrier_status_code for e in update.events] == ["CREATE", "OPERIN", "RECEIVE"]
        assert update.status is TrackingStatus.DELIVERED
        assert update.events[-1].location == {"name": "Szeged"}
        assert update.events[0].description_local == "Rendelés létrehozva"
        assert http.get.await_args.args[0] == f"{FOXPOST_PROD_URL}/api/tracking/CLFOX0001"

    @pytest.mark.asyncio
    async def test_unknown_barcode_is_not_found(self, adapter, ctx, http, ok_response):
        http.get.return_value = ok_response({})
        with pytest.raises(CarrierError) as exc_info:
            await adapter.track(TrackingRequest(tracking_number="NOPE", credentials=CREDS), ctx)
        assert exc_info.value.category is ErrorCategory.VALIDATION
        assert exc_info.value.carrier_code == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_rate_limit(self, adapter, ctx, http, error_response):
        http.get.side_effect = error_response(429, headers={"Retry-After": "30"})
        with pytest.raises(CarrierError) as exc_info:
            await adapter.track(TrackingRequest(tracking_number="CLFOX0001", credentials=CREDS), ctx)
        assert exc_info.value.category is ErrorCategory.RATE_LIMIT
        assert exc_info.value.retry_after_ms == 30_000


class TestFetchPickupPoints:
    @pytest.mark.asyncio
    async def test_feed_mapped(self, adapter, ctx, http, ok_response):
        http.get.return_value = ok_response([
            {
                "place_id": 1444335,
                "operator_id": "hu5844",
                "name": "FOXPOST A-BOX Szeged",
                "zip": "6720",
                "city": "Szeged",
                "street": "Kárász utca 1.",
                "country": "HU",
                "geolat": "46.2530",
                "geolng": "20.1482",
                "allowed2": "ALL",
                "apmType": "Rollkon",
            },
            {"place_id": 77, "name": "C2C only", "allowed2": "C2C"},
            {"name": "no id"},
        ])
        response = await adapter.fetch_pickup_points(FetchPickupPointsRequest(), ctx)

        assert response.total_count == 2
        first, second = response.points
        assert first.id == "hu5844"
        assert first.provider_id == "1444335"
        assert first.latitude == pytest.approx(46.253)
        assert first.country == "hu"
        assert first.pickup_allowed is True
        assert first.metadata == {"apmType": "Rollkon"}
        assert second.id == "77"
        assert second.pickup_allowed is False
        assert http.get.await_args.args[0] == FOXPOST_APM_FEED_URL

    @pytest.mark.asyncio
    async def test_unexpected_feed_raises(self, adapter, ctx, http, ok_response):
        http.get.return_value = ok_response({"oops": True})
        with pytest.raises(CarrierError) as exc_info:
            await adapter.fetch_pickup_points(FetchPickupPointsRequest(), ctx)
        assert exc_info.value.category is ErrorCategory.TRANSIENT


class TestMappers:
    def test_pickup_point_parcel(self, make_parcel):
        payload = map_parcel_to_foxpost(make_parcel("P1", pickup_point="hu5844", reference="ORDER-1"))
        assert payload["type"] == "APM"
        assert payload["destination"] == "hu5844"
        assert payload["refCode"] == "ORDER-1"
        assert payload["size"] == "S"

    def test_home_delivery_parcel(self, make_parcel):
        payload = map_parcel_to_foxpost(make_parcel("P1", cod_amount=4990, fragile=True))
        assert payload["type"] == "HD"
        assert payload["recipientZip"] == "6720"
        assert payload["cod"] == 4990
        assert payload["comment"] == "FRAGILE"

    def test_non_mobile_phone_rejected(self, make_parcel):
        with pytest.raises(CarrierError) as exc_info:
            map_parcel_to_foxpost(make_parcel("P1", phone="+3612345678"))
        assert exc_info.value.carrier_code == "INVALID_RECIPIENT"

    @pytest.mark.parametrize(
        "dims,size",
        [
            ((10, 10, 10), "XS"),
            ((20, 20, 20), "S"),
            ((30, 30, 30), "M"),
            ((40, 40, 40), "L"),
            ((50, 50, 50), "XL"),
        ],
    )
    def test_size_from_volume(self, make_parcel, dims, size):
        length, width, height = dims
        parcel = make_parcel("P1", dimensions=Dimensions(length_cm=length, width_cm=width, height_cm=height))
        assert determine_size(parcel) == size
