"""Tests for the filter engine."""

import pytest

from backend.services.errors import CriteriaValidationError
from backend.services.filter_engine import (
    FilterCriteria,
    active_filter_count,
    apply_filters,
    unique_values,
)


@pytest.fixture
def listings(make_listing):
    return [
        make_listing(vin="4T1K61AK0MU123456", model="RAV4", year=2021, price=26000, mileage=28000),
        make_listing(vin="2HKRM4H75KH334455", make="Honda", model="CR-V", year=2020, price=24800, mileage=32000),
        make_listing(vin="5TDDZ3DC7MS234567", model="Camry", year=2022, price=25900, mileage=18000),
        make_listing(vin="1HGCR2F37HA334455", make="Honda", model="Accord", year=2017, price=13900,
                     mileage=98000, accident_count=3, owner_count=4),
        make_listing(vin="2T3P1RFV8KW112233", model="RAV4", year=2019, price=21900, mileage=61000,
                     accident_count=1, owner_count=2),
    ]


def vins(result):
    return [v.vin for v in result]


class TestApplyFilters:
    def test_no_criteria_returns_everything_in_order(self, listings):
        assert apply_filters(listings, FilterCriteria()) == listings

    def test_all_sentinel_is_no_filter(self, listings):
        criteria = FilterCriteria(make="all", model="all", mileage_rating="all", quality_tier="all")
        assert apply_filters(listings, criteria) == listings

    def test_make(self, listings):
        result = apply_filters(listings, FilterCriteria(make="Honda"))
        assert vins(result) == ["2HKRM4H75KH334455", "1HGCR2F37HA334455"]

    def test_model_exact(self, listings):
        result = apply_filters(listings, FilterCriteria(model="RAV4"))
        assert vins(result) == ["4T1K61AK0MU123456", "2T3P1RFV8KW112233"]

    def test_year_range_inclusive(self, listings):
        result = apply_filters(listings, FilterCriteria(year_min=2020, year_max=2021))
        assert vins(result) == ["4T1K61AK0MU123456", "2HKRM4H75KH334455"]

    def test_price_range_inclusive(self, listings):
        result = apply_filters(listings, FilterCriteria(price_min=24800, price_max=26000))
        assert vins(result) == ["4T1K61AK0MU123456", "2HKRM4H75KH334455", "5TDDZ3DC7MS234567"]

    def test_zero_bound_is_active(self, listings):
        """0 is a real bound, distinct from unset."""
        assert apply_filters(listings, FilterCriteria(mileage_max=0)) == []
        assert active_filter_count(FilterCriteria(price_min=0)) == 1

    def test_mileage_max_inclusive(self, listings):
        result = apply_filters(listings, FilterCriteria(mileage_max=28000))
        assert vins(result) == ["4T1K61AK0MU123456", "5TDDZ3DC7MS234567"]

    def test_mileage_rating(self, listings):
        result = apply_filters(listings, FilterCriteria(mileage_rating="good"))
        assert vins(result) == ["1HGCR2F37HA334455", "2T3P1RFV8KW112233"]

    def test_quality_tier_uses_derived_tier(self, listings):
        result = apply_filters(listings, FilterCriteria(quality_tier="caution"))
        assert vins(result) == ["1HGCR2F37HA334455"]
        top = apply_filters(listings, FilterCriteria(quality_tier="top_pick"))
        assert all(v.priority_score >= 80 for v in top)

    def test_search_is_case_insensitive(self, listings):
        assert vins(apply_filters(listings, FilterCriteria(search="cr-v"))) == ["2HKRM4H75KH334455"]
        assert vins(apply_filters(listings, FilterCriteria(search="honda"))) == [
            "2HKRM4H75KH334455", "1HGCR2F37HA334455",
        ]

    def test_search_matches_vin_fragment_and_year(self, listings):
        assert vins(apply_filters(listings, FilterCriteria(search="mu1234"))) == ["4T1K61AK0MU123456"]
        assert vins(apply_filters(listings, FilterCriteria(search="2017"))) == ["1HGCR2F37HA334455"]

    def test_blank_search_is_unset(self, listings):
        criteria = FilterCriteria(search="   ")
        assert criteria.search is None
        assert apply_filters(listings, criteria) == listings

    def test_combined_criteria_and_together(self, listings):
        criteria = FilterCriteria(make="Toyota", model="RAV4", year_min=2020)
        assert vins(apply_filters(listings, criteria)) == ["4T1K61AK0MU123456"]

    def test_idempotent(self, listings):
        criteria = FilterCriteria(make="Toyota", price_max=26000)
        once = apply_filters(listings, criteria)
        assert apply_filters(once, criteria) == once

    def test_input_not_mutated(self, listings):
        before = list(listings)
        apply_filters(listings, FilterCriteria(make="Honda"))
        assert listings == before

    def test_empty_input(self):
        assert apply_filters([], FilterCriteria(make="Toyota")) == []


class TestActiveFilterCount:
    def test_counts_bounds_individually(self):
        criteria = FilterCriteria(make="Toyota", year_min=2019, year_max=2022, search="rav")
        assert active_filter_count(criteria) == 4

    def test_all_and_none_are_inactive(self):
        assert active_filter_count(FilterCriteria(make="all", quality_tier="all")) == 0
        assert active_filter_count(FilterCriteria()) == 0


class TestCriteriaValidation:
    def test_year_min_above_max_rejected(self):
        with pytest.raises(CriteriaValidationError) as exc_info:
            FilterCriteria.parse(year_min=2023, year_max=2020)
        assert "year_min" in str(exc_info.value)

    def test_price_min_above_max_rejected(self):
        with pytest.raises(CriteriaValidationError):
            FilterCriteria.parse(price_min=30000, price_max=20000)

    def test_non_numeric_bound_rejected(self):
        with pytest.raises(CriteriaValidationError) as exc_info:
            FilterCriteria.parse(price_max="cheap")
        assert exc_info.value.errors[0]["field"] == "price_max"

    def test_negative_bound_rejected(self):
        with pytest.raises(CriteriaValidationError):
            FilterCriteria.parse(mileage_max=-1)

    def test_unknown_enum_rejected(self):
        with pytest.raises(CriteriaValidationError) as exc_info:
            FilterCriteria.parse(make="Ford")
        assert exc_info.value.errors[0]["field"] == "make"

    def test_numeric_strings_accepted(self):
        criteria = FilterCriteria.parse(year_min="2019", price_max="30000")
        assert criteria.year_min == 2019
        assert criteria.price_max == 30000


class TestUniqueValues:
    def test_sorted_options(self, listings):
        options = unique_values(listings)
        assert options["makes"] == ["Honda", "Toyota"]
        assert options["models"] == ["Accord", "Camry", "CR-V", "RAV4"]
        assert options["years"] == [2022, 2021, 2020, 2019, 2017]

    def test_empty(self):
        assert unique_values([]) == {"makes": [], "models": [], "years": []}
