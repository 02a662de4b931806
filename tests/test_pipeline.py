"""
Unit tests for the pure pipeline pieces: cost model, parse strategy,
confidence rules, renewal messages and receipt helpers.
"""
import base64
import json
from datetime import date, datetime

import httpx
import pytest

from receiptsnap.clients.fcm import build_renewal_message
from receiptsnap.errors import (
    ErrorKind,
    StorageError,
    Unauthorized,
    UpstreamError,
    ValidationFailed,
    classify_error,
    error_response,
)
from receiptsnap.pipeline import ParseKind, calculate_cost, parse_extraction
from receiptsnap.pipeline.parsing import apply_confidence_rules, coerce_number
from receiptsnap.pipeline.receipts import (
    build_subscription,
    decode_image,
    normalize_billing_cycle,
    parse_date,
    requires_review,
    storage_path_for,
)
from receiptsnap.pipeline.renewals import days_until, notification_type_for
from receiptsnap.schemas import ExtractionResult
from receiptsnap.storage import LocalObjectStorage, ObjectStorage

SPOTIFY = {
    "subscription_name": "Spotify Premium",
    "billing_entity": "Spotify AB",
    "amount": 10.99,
    "currency": "EUR",
    "billing_cycle": "monthly",
    "start_date": "2026-03-14",
    "next_charge_date": "2026-11-14",
    "payment_method": "Mastercard ****5100",
    "renewal_terms": "Renews automatically every month",
    "cancellation_policy": "Cancel any time before the next billing date",
    "cancellation_deadline": "2026-11-13",
    "confidence_score": 0.92,
    "raw_text": "Spotify Premium Individual EUR 10.99 / month",
}


# =====================================================================
# Cost model
# =====================================================================
class TestCostModel:
    def test_known_model(self):
        cost = calculate_cost("accounts/fireworks/models/qwen3-vl-30b-a3b-instruct", 1_000_000, 1_000_000)
        assert cost.input_cost == pytest.approx(0.15)
        assert cost.output_cost == pytest.approx(0.60)
        assert cost.total_cost == pytest.approx(0.75)
        assert cost.input_price_per_million == 0.15
        assert cost.output_price_per_million == 0.60

    def test_unknown_model_uses_default(self):
        cost = calculate_cost("accounts/fireworks/models/something-else", 500_000, 250_000)
        assert cost.input_cost == pytest.approx(0.5)
        assert cost.output_cost == pytest.approx(0.25)
        assert cost.input_price_per_million == 1.0

    def test_zero_tokens(self):
        assert calculate_cost("anything", 0, 0).total_cost == 0


# =====================================================================
# Parse strategy
# =====================================================================
class TestParseExtraction:
    def test_well_formed_json_round_trips(self):
        outcome = parse_extraction(json.dumps(SPOTIFY))
        assert outcome.kind is ParseKind.PARSED
        assert outcome.extraction.model_dump() == SPOTIFY

    def test_extra_keys_are_kept(self):
        payload = dict(SPOTIFY, plan="Individual")
        outcome = parse_extraction(json.dumps(payload))
        assert outcome.extraction.model_dump()["plan"] == "Individual"

    def test_json_in_prose_is_recovered(self):
        content = "Here is the data you asked for:\n" + json.dumps(SPOTIFY) + "\nLet me know!"
        outcome = parse_extraction(content)
        assert outcome.kind is ParseKind.RECOVERED
        assert outcome.extraction.subscription_name == "Spotify Premium"
        assert outcome.extraction.confidence_score == 0.92

    def test_fenced_json_is_recovered(self):
        content = "```json\n" + json.dumps(SPOTIFY) + "\n```"
        outcome = parse_extraction(content)
        assert outcome.kind is ParseKind.RECOVERED
        assert outcome.extraction.amount == 10.99

    @pytest.mark.parametrize(
        "content",
        [
            "I could not read this receipt.",
            "{not json at all}",
            "[1, 2, 3]",
        ],
    )
    def test_malformed_output_falls_back(self, content):
        outcome = parse_extraction(content)
        assert outcome.kind is ParseKind.FALLBACK
        assert outcome.extraction is not None
        assert outcome.extraction.raw_text == content
        assert outcome.extraction.confidence_score == 0
        assert outcome.extraction.subscription_name is None
        assert outcome.extraction.amount is None
        assert outcome.extraction.next_charge_date is None

    def test_wrong_types_kept_verbatim(self):
        content = '{"subscription_name": "Gym", "amount": "about twenty", "confidence_score": 0.9}'
        outcome = parse_extraction(content)
        assert outcome.kind is ParseKind.PARSED
        assert outcome.extraction.subscription_name == "Gym"
        assert outcome.extraction.amount == "about twenty"
        assert outcome.extraction.confidence_score == 0.9

    def test_numeric_strings_not_coerced(self):
        outcome = parse_extraction(json.dumps(dict(SPOTIFY, amount="15.99")))
        assert outcome.extraction.amount == "15.99"
        assert outcome.extraction.model_dump() == dict(SPOTIFY, amount="15.99")


# =====================================================================
# Confidence rules
# =====================================================================
class TestConfidenceRules:
    @pytest.mark.parametrize("name", [None, "", "   ", "Unknown"])
    def test_unnamed_capped(self, name):
        result = apply_confidence_rules(ExtractionResult(subscription_name=name, confidence_score=0.97))
        assert result.confidence_score <= 0.3

    def test_unnamed_missing_score_becomes_zero(self):
        result = apply_confidence_rules(ExtractionResult(subscription_name="Unknown"))
        assert result.confidence_score == 0

    def test_low_score_not_raised(self):
        result = apply_confidence_rules(ExtractionResult(subscription_name="", confidence_score=0.1))
        assert result.confidence_score == 0.1

    def test_named_untouched(self):
        result = apply_confidence_rules(ExtractionResult(subscription_name="Hulu", confidence_score=0.97))
        assert result.confidence_score == 0.97

    def test_parse_applies_cap(self):
        content = json.dumps(dict(SPOTIFY, subscription_name="Unknown", confidence_score=0.9))
        assert parse_extraction(content).extraction.confidence_score == 0.3

    def test_unnamed_string_score_capped(self):
        result = apply_confidence_rules(ExtractionResult(subscription_name=None, confidence_score="0.9"))
        assert result.confidence_score == 0.3

    def test_non_string_name_is_unusable(self):
        assert not ExtractionResult(subscription_name=42).has_usable_name


# =====================================================================
# Renewal messages
# =====================================================================
class TestRenewalMessage:
    def test_tomorrow(self):
        msg = build_renewal_message("Netflix", 15.99, "USD", 1, "sub-1", "renewal_1d")
        assert msg.title == "Renewal Tomorrow!"
        assert msg.body == "Netflix will charge USD 15.99 in 1 day"

    def test_three_days(self):
        msg = build_renewal_message("Netflix", 15.99, "USD", 3, "sub-1", "renewal_3d")
        assert msg.title == "Upcoming Renewal"
        assert msg.body == "Netflix will charge USD 15.99 in 3 days"

    def test_amount_two_decimals(self):
        msg = build_renewal_message("iCloud+", 3, "EUR", 3, "sub-2", "renewal_3d")
        assert "EUR 3.00" in msg.body

    def test_data_payload(self):
        msg = build_renewal_message("Netflix", 15.99, "USD", 1, "sub-1", "renewal_1d")
        assert msg.data["subscription_id"] == "sub-1"
        assert msg.data["type"] == "renewal_1d"
        assert all(isinstance(v, str) for v in msg.data.values())


# =====================================================================
# Receipt helpers
# =====================================================================
class TestReceiptHelpers:
    def test_decode_image(self):
        raw = b"\xff\xd8\xff\xe0fake-jpeg"
        assert decode_image(base64.b64encode(raw).decode()) == raw

    def test_decode_data_uri(self):
        raw = b"\x89PNGfake"
        uri = "data:image/png;base64," + base64.b64encode(raw).decode()
        assert decode_image(uri) == raw

    @pytest.mark.parametrize("value", [None, "", "not base64 !!"])
    def test_decode_rejects(self, value):
        with pytest.raises(ValidationFailed):
            decode_image(value)

    def test_storage_path(self):
        assert storage_path_for("u1", "r1", "image/jpeg") == "u1/r1.jpg"
        assert storage_path_for("u1", "r1", "image/png") == "u1/r1.png"
        assert storage_path_for("u1", "r1", "application/octet-stream") == "u1/r1.jpg"

    def test_billing_cycle(self):
        assert normalize_billing_cycle("Monthly") == "monthly"
        assert normalize_billing_cycle("semi_annual") == "semi_annual"
        assert normalize_billing_cycle("fortnightly") == "unknown"
        assert normalize_billing_cycle(None) == "unknown"

    def test_parse_date(self):
        assert parse_date("2026-11-01") == date(2026, 11, 1)
        assert parse_date("2026-11-01T00:00:00Z") == date(2026, 11, 1)
        assert parse_date("next month") is None
        assert parse_date(None) is None

    def test_requires_review(self):
        assert requires_review(ExtractionResult(confidence_score=0.79))
        assert not requires_review(ExtractionResult(confidence_score=0.8))
        assert requires_review(ExtractionResult())

    def test_build_subscription_defaults(self):
        sub = build_subscription("u1", "r1", ExtractionResult(confidence_score=0.0, raw_text="???"))
        assert sub.subscription_name == "Unknown Subscription"
        assert sub.currency == "USD"
        assert sub.billing_cycle == "unknown"
        assert sub.amount == 0
        assert sub.user_verified is False

    def test_build_subscription_fields(self):
        sub = build_subscription("u1", "r1", ExtractionResult(**SPOTIFY))
        assert sub.subscription_name == "Spotify Premium"
        assert sub.next_charge_date == date(2026, 11, 14)
        assert sub.cancellation_deadline == date(2026, 11, 13)
        assert sub.confidence_score == 0.92

    @pytest.mark.parametrize(
        "value, expected",
        [(15.99, 15.99), (3, 3.0), ("15.99", 15.99), ("$1,299.00", 1299.0),
         ("about twenty", None), (True, None), (None, None), ("nan", None), ([1], None)],
    )
    def test_coerce_number(self, value, expected):
        assert coerce_number(value) == expected

    def test_requires_review_loose_score(self):
        assert not requires_review(ExtractionResult(confidence_score="0.95"))
        assert requires_review(ExtractionResult(confidence_score="high"))

    def test_build_subscription_coerces_model_values(self):
        extraction = ExtractionResult(
            subscription_name="  Gym  ",
            amount="15.99",
            currency=978,
            billing_cycle=["monthly"],
            next_charge_date=20261101,
            payment_method={"card": "Visa"},
            confidence_score="0.9",
        )
        sub = build_subscription("u1", "r1", extraction)
        assert sub.subscription_name == "Gym"
        assert sub.amount == 15.99
        assert sub.currency == "USD"
        assert sub.billing_cycle == "unknown"
        assert sub.next_charge_date is None
        assert sub.payment_method is None
        assert sub.confidence_score == 0.9

    def test_build_subscription_unreadable_amount(self):
        sub = build_subscription("u1", "r1", ExtractionResult(subscription_name="Gym", amount="about twenty"))
        assert sub.subscription_name == "Gym"
        assert sub.amount == 0


# =====================================================================
# Scheduler arithmetic
# =====================================================================
class TestDaysUntil:
    def test_calendar_ceiling(self):
        now = datetime(2026, 10, 19, 9, 30)
        assert days_until(date(2026, 10, 20), now) == 1
        assert days_until(date(2026, 10, 22), now) == 3

    def test_at_midnight(self):
        now = datetime(2026, 10, 19, 0, 0)
        assert days_until(date(2026, 10, 20), now) == 1

    def test_notification_type(self):
        assert notification_type_for(1).value == "renewal_1d"
        assert notification_type_for(3).value == "renewal_3d"


# =====================================================================
# Error classification
# =====================================================================
class TestErrorClassification:
    def test_service_errors(self):
        assert classify_error(ValidationFailed("bad")).status_code == 400
        assert classify_error(Unauthorized("who?")).status_code == 401
        classified = classify_error(UpstreamError("down", upstream_status=503))
        assert classified.kind is ErrorKind.UPSTREAM
        assert classified.upstream_status == 503

    def test_http_status_error_truncated(self):
        request = httpx.Request("POST", "https://example.invalid")
        response = httpx.Response(502, text="y" * 1000, request=request)
        exc = httpx.HTTPStatusError("bad gateway", request=request, response=response)
        classified = classify_error(exc)
        assert classified.kind is ErrorKind.UPSTREAM
        assert classified.upstream_status == 502
        assert classified.message.count("y") == 500

    def test_unclassified(self):
        classified = classify_error(RuntimeError("boom"))
        assert classified.kind is ErrorKind.INTERNAL
        assert classified.status_code == 500
        assert classified.message == "boom"
        assert classify_error(RuntimeError()).message == "An unexpected error occurred"

    def test_response_carries_receipt_id(self):
        resp = error_response(UpstreamError("Extraction failed", receipt_id="r-1"))
        assert resp.status_code == 500
        assert json.loads(resp.body) == {"success": False, "error": "Extraction failed", "receipt_id": "r-1"}


# =====================================================================
# Object storage
# =====================================================================
class TestObjectStorage:
    def test_interface_is_abstract(self):
        with pytest.raises(TypeError):
            ObjectStorage()

    def test_local_upload(self, tmp_path):
        store = LocalObjectStorage(tmp_path)
        assert store.upload("u1/r1.jpg", b"img", content_type="image/jpeg") == "u1/r1.jpg"
        assert (tmp_path / "receipts" / "u1" / "r1.jpg").read_bytes() == b"img"

    def test_existing_object_needs_upsert(self, tmp_path):
        store = LocalObjectStorage(tmp_path)
        store.upload("u1/r1.jpg", b"one", content_type="image/jpeg")
        with pytest.raises(StorageError):
            store.upload("u1/r1.jpg", b"two", content_type="image/jpeg")
        store.upload("u1/r1.jpg", b"two", content_type="image/jpeg", upsert=True)
        assert (tmp_path / "receipts" / "u1" / "r1.jpg").read_bytes() == b"two"

    def test_path_traversal_rejected(self, tmp_path):
        with pytest.raises(StorageError):
            LocalObjectStorage(tmp_path).upload("../escape.jpg", b"x", content_type="image/jpeg")
