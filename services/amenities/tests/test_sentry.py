"""Sentry before_send scrubbing."""

from services.amenities.middleware.sentry import FILTERED, _strip_sensitive_data, setup_sentry


class TestStripSensitiveData:

    def test_headers_and_contact_fields_scrubbed(self):
        event = {
            "request": {
                "headers": {"X-User-Id": "user-1", "X-Admin-Signature": "abc", "Accept": "*/*"},
                "data": {"contactInfo": "+15551234", "contactType": "sms", "nickname": "Sam"},
            },
            "breadcrumbs": {"values": [{"data": {"headers": {"Cookie": "session=1"}}}]},
        }

        scrubbed = _strip_sensitive_data(event, {})

        assert scrubbed["request"]["headers"] == {
            "X-User-Id": FILTERED, "X-Admin-Signature": FILTERED, "Accept": "*/*",
        }
        assert scrubbed["request"]["data"] == {
            "contactInfo": FILTERED, "contactType": FILTERED, "nickname": "Sam",
        }
        assert scrubbed["breadcrumbs"]["values"][0]["data"]["headers"]["Cookie"] == FILTERED

    def test_event_without_request(self):
        assert _strip_sensitive_data({"message": "boom"}, {}) == {"message": "boom"}


def test_setup_skipped_without_dsn():
    assert setup_sentry() is False
