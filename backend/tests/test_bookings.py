"""
Booking scheduler: preconditions, capacity and cancellation.

2030-06-03 is a Monday; 2030-06-02 is a Sunday (not a default working day).
"""

import pytest

from printshop.models import BookingDayCapacity
from printshop.services import booking_service, calendar_service


MONDAY = "2030-06-03"
SUNDAY = "2030-06-02"


def _slot(day=MONDAY, start="09:00", end="11:00"):
    return f"{day}T{start}:00Z", f"{day}T{end}:00Z"


def _book(client, headers, quote_id, day=MONDAY, is_emergency=False):
    start_at, end_at = _slot(day)
    return client.post(
        "/api/bookings",
        json={"quote_id": quote_id, "start_at": start_at, "end_at": end_at, "is_emergency": is_emergency},
        headers=headers,
    )


class TestCreateBooking:

    def test_books_finalized_quote(self, client, make_order, customer_headers, events):
        quote, _, _ = make_order()

        resp = _book(client, customer_headers, quote.id)

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["status"] == "PENDING"
        assert body["is_emergency"] is False
        assert body["urgent_fee_pct"] == 0
        assert body["start_at"] == "2030-06-03T09:00:00Z"
        assert events[-1]["event_type"] == "booking.created"

    def test_unfinalized_quote_rejected(self, client, make_quote, customer_headers):
        quote = make_quote()
        resp = _book(client, customer_headers, quote.id)
        assert resp.status_code == 400
        assert "finalized" in resp.get_json()["error"]

    def test_foreign_quote_rejected(self, client, make_order, other_customer, customer_headers):
        quote, _, _ = make_order(owner=other_customer)
        assert _book(client, customer_headers, quote.id).status_code == 403

    def test_staff_cannot_book(self, client, make_order, staff_headers):
        quote, _, _ = make_order()
        assert _book(client, staff_headers, quote.id).status_code == 403

    def test_one_active_booking_per_quote(self, client, make_order, customer_headers):
        quote, _, _ = make_order()
        assert _book(client, customer_headers, quote.id).status_code == 201
        assert _book(client, customer_headers, quote.id).status_code == 400

    def test_past_slot_rejected(self, client, make_order, customer_headers):
        quote, _, _ = make_order()
        assert _book(client, customer_headers, quote.id, day="2001-01-01").status_code == 400

    @pytest.mark.parametrize("start_at,end_at", [
        ("2030-06-03T11:00:00Z", "2030-06-03T09:00:00Z"),
        ("2030-06-03T09:00:00Z", "2030-06-03T09:00:00Z"),
        ("2030-06-03T22:00:00Z", "2030-06-04T01:00:00Z"),
        ("not-a-date", "2030-06-03T11:00:00Z"),
        (None, "2030-06-03T11:00:00Z"),
    ])
    def test_invalid_range_rejected(self, client, make_order, customer_headers, start_at, end_at):
        quote, _, _ = make_order()
        resp = client.post(
            "/api/bookings",
            json={"quote_id": quote.id, "start_at": start_at, "end_at": end_at},
            headers=customer_headers,
        )
        assert resp.status_code == 400

    @pytest.mark.parametrize("quote_id", [{"id": 1}, "abc", None, True])
    def test_malformed_quote_id_is_400(self, client, make_order, customer_headers, quote_id):
        make_order()
        resp = _book(client, customer_headers, quote_id)
        assert resp.status_code == 400

    def test_non_boolean_emergency_flag_rejected(self, client, make_order, customer_headers):
        quote, _, _ = make_order()
        assert _book(client, customer_headers, quote.id, is_emergency="yes").status_code == 400

    def test_regular_booking_on_non_working_day_rejected(self, client, make_order, customer_headers):
        quote, _, _ = make_order()
        assert _book(client, customer_headers, quote.id, day=SUNDAY).status_code == 400

    def test_emergency_booking_allowed_on_non_working_day(self, client, make_order, customer_headers):
        quote, _, _ = make_order()
        resp = _book(client, customer_headers, quote.id, day=SUNDAY, is_emergency=True)
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["is_emergency"] is True
        assert body["urgent_fee_pct"] == 20

    def test_blackout_date_rejects_everything(self, client, make_order, admin, customer_headers):
        calendar_service.add_blackout_date(MONDAY, admin, reason="Holiday")
        quote, _, _ = make_order()

        assert _book(client, customer_headers, quote.id).status_code == 400
        assert _book(client, customer_headers, quote.id, is_emergency=True).status_code == 400


class TestCapacity:

    def test_last_slot_goes_to_one_booking(self, client, make_order, admin, other_customer,
                                           customer_headers, other_customer_headers):
        calendar_service.update_calendar_settings({"slots_per_day": 1}, admin)
        mine, _, _ = make_order()
        theirs, _, _ = make_order(owner=other_customer)

        assert _book(client, customer_headers, mine.id).status_code == 201
        resp = _book(client, other_customer_headers, theirs.id)
        assert resp.status_code == 400
        assert "No slots available" in resp.get_json()["error"]

    def test_emergency_pool_is_separate(self, client, make_order, admin, other_customer,
                                        customer_headers, other_customer_headers):
        calendar_service.update_calendar_settings({"slots_per_day": 1, "emergency_slots_per_day": 1}, admin)
        mine, _, _ = make_order()
        theirs, _, _ = make_order(owner=other_customer)

        assert _book(client, customer_headers, mine.id).status_code == 201
        assert _book(client, other_customer_headers, theirs.id, is_emergency=True).status_code == 201

    def test_cancel_releases_slot(self, client, make_order, admin, other_customer,
                                  customer_headers, other_customer_headers, db_session):
        calendar_service.update_calendar_settings({"slots_per_day": 1}, admin)
        mine, _, _ = make_order()
        theirs, _, _ = make_order(owner=other_customer)

        booking_id = _book(client, customer_headers, mine.id).get_json()["id"]
        resp = client.patch(f"/api/bookings/{booking_id}", json={"status": "CANCELLED"}, headers=customer_headers)
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "CANCELLED"

        capacity = db_session.query(BookingDayCapacity).one()
        db_session.refresh(capacity)
        assert capacity.booked_count == 0

        assert _book(client, other_customer_headers, theirs.id).status_code == 201

    def test_completed_booking_keeps_its_slot(self, client, make_order, admin, other_customer,
                                              customer_headers, other_customer_headers, staff_headers):
        calendar_service.update_calendar_settings({"slots_per_day": 1}, admin)
        mine, _, _ = make_order()
        theirs, _, _ = make_order(owner=other_customer)

        booking_id = _book(client, customer_headers, mine.id).get_json()["id"]
        for status in ("CONFIRMED", "COMPLETED"):
            resp = client.patch(f"/api/bookings/{booking_id}", json={"status": status}, headers=staff_headers)
            assert resp.status_code == 200

        resp = client.get(f"/api/calendar/availability?start_date={MONDAY}&end_date={MONDAY}")
        monday = resp.get_json()["available_dates"][0]
        assert monday["available_slot_count"] == 0
        assert monday["is_full"] is True

        assert _book(client, other_customer_headers, theirs.id).status_code == 400

    def test_cancelled_quote_can_be_rebooked(self, client, make_order, customer_headers):
        quote, _, _ = make_order()
        booking_id = _book(client, customer_headers, quote.id).get_json()["id"]
        client.patch(f"/api/bookings/{booking_id}", json={"status": "CANCELLED"}, headers=customer_headers)

        assert _book(client, customer_headers, quote.id).status_code == 201


class TestBookingStatus:

    def test_staff_confirms_then_completes(self, client, make_order, customer_headers, staff_headers, events):
        quote, _, _ = make_order()
        booking_id = _book(client, customer_headers, quote.id).get_json()["id"]

        resp = client.patch(f"/api/bookings/{booking_id}", json={"status": "CONFIRMED"}, headers=staff_headers)
        assert resp.status_code == 200
        assert events[-1]["event_type"] == "booking.confirmed"

        resp = client.patch(f"/api/bookings/{booking_id}", json={"status": "COMPLETED"}, headers=staff_headers)
        assert resp.status_code == 200
        assert events[-1]["event_type"] == "booking.status_updated"

    def test_customer_may_only_cancel(self, client, make_order, customer_headers):
        quote, _, _ = make_order()
        booking_id = _book(client, customer_headers, quote.id).get_json()["id"]

        resp = client.patch(f"/api/bookings/{booking_id}", json={"status": "CONFIRMED"}, headers=customer_headers)
        assert resp.status_code == 403

    def test_other_customer_cannot_cancel(self, client, make_order, customer_headers, other_customer_headers):
        quote, _, _ = make_order()
        booking_id = _book(client, customer_headers, quote.id).get_json()["id"]

        resp = client.patch(f"/api/bookings/{booking_id}", json={"status": "CANCELLED"}, headers=other_customer_headers)
        assert resp.status_code == 403

    def test_pending_cannot_complete(self, client, make_order, customer_headers, staff_headers):
        quote, _, _ = make_order()
        booking_id = _book(client, customer_headers, quote.id).get_json()["id"]

        resp = client.patch(f"/api/bookings/{booking_id}", json={"status": "COMPLETED"}, headers=staff_headers)
        assert resp.status_code == 400

    def test_lists_are_scoped(self, client, make_order, other_customer, customer_headers,
                              other_customer_headers, staff_headers):
        mine, _, _ = make_order()
        theirs, _, _ = make_order(owner=other_customer)
        _book(client, customer_headers, mine.id)
        _book(client, other_customer_headers, theirs.id)

        assert len(client.get("/api/bookings", headers=customer_headers).get_json()["bookings"]) == 1
        assert len(client.get("/api/bookings", headers=staff_headers).get_json()["bookings"]) == 2

        resp = client.get(f"/api/bookings?start_date={SUNDAY}&end_date={SUNDAY}", headers=staff_headers)
        assert resp.get_json()["bookings"] == []

    def test_parse_booking_status(self):
        assert booking_service.parse_booking_status("confirmed").value == "CONFIRMED"
