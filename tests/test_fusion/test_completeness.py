"""Tests for completeness scoring and base-record selection."""

from leadfusion.fusion.completeness import completeness_score, pick_most_complete
from leadfusion.fusion.records import Address, Contact, RawPropertyRecord


def _record(**fields):
    fields.setdefault("address", Address(street="123 Main St", city="Anytown", state="CA", zip="90210"))
    return RawPropertyRecord(**fields)


class TestCompletenessScore:
    def test_empty_record_scores_zero(self):
        assert completeness_score(RawPropertyRecord()) == 0
        assert completeness_score(None) == 0

    def test_weights(self):
        record = _record(
            owner_name="Jane Doe",
            parcel_id="P-1",
            attributes={"bedrooms": 3, "bathrooms": 2, "squareFeet": 1400, "yearBuilt": 1978, "lotSize": 0.2},
            price_hint=250000,
            last_event_date="2024-01-05",
            contacts=[
                Contact(type="phone", value="555-123-4567"),
                Contact(type="email", value="jane@example.com"),
            ],
        )
        # 2 owner + 2 parcel + 5 attributes + 1 price + 1 date + 4 contacts
        assert completeness_score(record) == 15

    def test_apn_counts_as_parcel(self):
        assert completeness_score(_record(apn="123-45-678")) == 2

    def test_parcel_and_apn_count_once(self):
        assert completeness_score(_record(parcel_id="P-1", apn="123")) == 2

    def test_extra_attributes_do_not_count(self):
        assert completeness_score(_record(attributes={"pool": "yes"})) == 0

    def test_blank_values_do_not_count(self):
        assert completeness_score(_record(owner_name="", attributes={"bedrooms": ""})) == 0

    def test_zero_price_hint_counts(self):
        assert completeness_score(_record(price_hint=0)) == 1


class TestPickMostComplete:
    def test_picks_highest_score(self):
        sparse = _record(source_key="classifieds")
        rich = _record(source_key="zillow", owner_name="Jane Doe", attributes={"bedrooms": 3})
        assert pick_most_complete([sparse, rich]) is rich

    def test_first_seen_wins_ties(self):
        first = _record(source_key="zillow", owner_name="Jane Doe")
        second = _record(source_key="redfin", owner_name="John Doe")
        assert pick_most_complete([first, second]) is first

    def test_empty_bucket_yields_empty_record(self):
        base = pick_most_complete([])
        assert base.address.street == ""
        assert base.source_key is None
