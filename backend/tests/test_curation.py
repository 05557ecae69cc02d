"""Tests for the curation orchestrator."""

from datetime import datetime, timezone

import pytest

from backend.services.curation import (
    CurationQuery,
    CurationRun,
    CurationService,
    CurationStage,
    tier_stats,
)
from backend.services.errors import CriteriaValidationError, InvariantViolationError, SourceUnavailableError
from backend.services.filter_engine import FilterCriteria
from backend.services.source_resolver import SourceResolver

RESOLVED_AT = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeSource:
    """In-memory source returning prebuilt listings (or failing)."""

    def __init__(self, name, listings=(), fail=False):
        self.name = name
        self.listings = list(listings)
        self.fail = fail

    async def try_get(self, vin, resolved_at):
        if self.fail:
            raise SourceUnavailableError(self.name)
        return next((v for v in self.listings if v.vin == vin), None)

    async def try_query(self, criteria, sort, resolved_at):
        if self.fail:
            raise SourceUnavailableError(self.name)
        return list(self.listings)


def _service(*sources):
    return CurationService(SourceResolver(sources, clock=lambda: RESOLVED_AT), max_visible_pages=5)


@pytest.fixture
def a1(make_listing):
    return make_listing(vin="4T1K61AK0MU123456")


@pytest.fixture
def b1(make_listing):
    return make_listing(vin="2T3P1RFV8KW112233", accident_count=3, owner_count=4)


class TestCurate:
    @pytest.mark.asyncio
    async def test_default_query_orders_by_priority(self, a1, b1):
        result = await _service(FakeSource("primary", [b1, a1])).curate()
        assert [v.vin for v in result.page] == [a1.vin, b1.vin]
        assert [v.priority_score for v in result.page] == [97, 57]
        assert result.stats == {"total": 2, "by_tier": {"top_pick": 1, "good_buy": 0, "caution": 1}}
        assert result.source == "primary"
        assert result.degraded is False
        assert result.error is None

    @pytest.mark.asyncio
    async def test_tier_filter(self, a1, b1):
        query = CurationQuery.parse(quality_tier="caution")
        result = await _service(FakeSource("primary", [a1, b1])).curate(query)
        assert [v.vin for v in result.page] == [b1.vin]
        assert result.filter_summary["active_count"] == 1
        assert result.stats["by_tier"] == {"top_pick": 0, "good_buy": 0, "caution": 1}

    @pytest.mark.asyncio
    async def test_stats_cover_filtered_not_paginated(self, make_listing):
        listings = [make_listing(vin=f"4T1K61AK0MU12345{i}", price=20000 + i * 100) for i in range(6)]
        query = CurationQuery.parse(page=2, page_size=4, sort_field="price", sort_order="asc")
        result = await _service(FakeSource("primary", listings)).curate(query)
        assert len(result.page) == 2
        assert result.stats["total"] == 6
        assert result.pagination.current_page == 2
        assert result.pagination.total_pages == 2
        assert result.page_numbers == [1, 2]

    @pytest.mark.asyncio
    async def test_falls_back_and_reports_degraded(self, a1):
        result = await _service(FakeSource("primary", fail=True), FakeSource("fallback", [a1])).curate()
        assert result.source == "fallback"
        assert result.degraded is True
        assert result.error is None
        assert result.stages[-1] == "done"

    @pytest.mark.asyncio
    async def test_all_sources_failing_is_an_explicit_error(self):
        result = await _service(FakeSource("primary", fail=True), FakeSource("legacy", fail=True)).curate()
        assert result.page == []
        assert result.error is not None
        assert result.pagination.total_items == 0
        assert result.stats == {"total": 0, "by_tier": {"top_pick": 0, "good_buy": 0, "caution": 0}}
        assert result.stages == ["idle", "resolving", "errored"]

    @pytest.mark.asyncio
    async def test_no_matches_is_not_an_error(self, a1):
        query = CurationQuery.parse(make="Honda")
        result = await _service(FakeSource("primary", [a1])).curate(query)
        assert result.page == []
        assert result.error is None
        assert result.stages == ["idle", "resolving", "filtering", "sorting", "paginating", "done"]

    @pytest.mark.asyncio
    async def test_failed_primary_and_empty_fallback_is_not_an_error(self):
        query = CurationQuery.parse(make="Honda")
        result = await _service(FakeSource("primary", fail=True), FakeSource("fallback", [])).curate(query)
        assert result.page == []
        assert result.error is None
        assert result.degraded is True
        assert result.stages == ["idle", "resolving", "filtering", "sorting", "paginating", "done"]

    @pytest.mark.asyncio
    async def test_price_filter_priority_sort_single_item_pages(self, a1, b1, make_listing):
        c1 = make_listing(vin="JTMW1RFV5KD000111", price=42000)
        service = _service(FakeSource("primary", [c1, b1, a1]))

        first = await service.curate(CurationQuery.parse(price_max="35000", page=1, page_size=1))
        assert [v.vin for v in first.page] == [a1.vin]
        assert first.pagination.total_items == 2
        assert first.pagination.total_pages == 2
        assert first.stats["total"] == 2

        second = await service.curate(CurationQuery.parse(price_max="35000", page=2, page_size=1))
        assert [v.vin for v in second.page] == [b1.vin]
        assert second.pagination.has_next_page is False

    @pytest.mark.asyncio
    async def test_to_dict(self, a1):
        result = await _service(FakeSource("primary", [a1])).curate()
        payload = result.to_dict()
        assert payload["listings"][0]["quality_tier"] == "top_pick"
        assert payload["listings"][0]["quality_tier_label"] == "Top Pick"
        assert payload["pagination"]["total_items"] == 1
        assert payload["pagination"]["page_numbers"] == [1]
        assert payload["filter_summary"]["active_count"] == 0


class TestFilterOptionsAndLookup:
    @pytest.mark.asyncio
    async def test_filter_options(self, a1, make_listing):
        crv = make_listing(vin="2HKRM4H75KH334455", make="Honda", model="CR-V", year=2020)
        options = await _service(FakeSource("legacy", [a1, crv])).filter_options()
        assert options["makes"] == ["Honda", "Toyota"]
        assert options["models"] == ["CR-V", "RAV4"]
        assert options["years"] == [2021, 2020]
        assert options["page_sizes"] == [10, 25, 50, 100]
        assert [t["value"] for t in options["tiers"]] == ["top_pick", "good_buy", "caution"]
        assert options["tiers"][2]["label"] == "Caution"
        assert options["source"] == "legacy"

    @pytest.mark.asyncio
    async def test_lookup(self, a1):
        service = _service(FakeSource("primary", [a1]))
        assert (await service.lookup("4t1k61ak0mu123456")).vin == a1.vin
        assert await service.lookup("2HKRM4H75KH334455") is None


class TestCurationQuery:
    def test_defaults(self):
        query = CurationQuery()
        assert (query.sort_field, query.sort_order, query.page, query.page_size) == ("priority", "desc", 1, 25)
        assert query.filters == FilterCriteria()

    def test_flat_options_routed_to_filters(self):
        query = CurationQuery.parse(make="Toyota", year_min="2019", sort_field="price")
        assert query.filters.make == "Toyota"
        assert query.filters.year_min == 2019
        assert query.sort_field == "price"

    def test_invalid_sort_field_rejected(self):
        with pytest.raises(CriteriaValidationError):
            CurationQuery.parse(sort_field="color")

    def test_page_size_bounds(self):
        with pytest.raises(CriteriaValidationError):
            CurationQuery.parse(page_size=0)
        with pytest.raises(CriteriaValidationError):
            CurationQuery.parse(page_size=101)

    def test_invalid_filter_rejected_before_any_stage(self):
        with pytest.raises(CriteriaValidationError):
            CurationQuery.parse(year_min=2024, year_max=2020)


class TestCurationRun:
    def test_happy_path(self):
        run = CurationRun()
        for stage in ("resolving", "filtering", "sorting", "paginating", "done"):
            run.advance(CurationStage(stage))
        assert run.stage is CurationStage.DONE

    def test_errored_only_from_resolving(self):
        run = CurationRun()
        run.advance(CurationStage.RESOLVING)
        run.advance(CurationStage.FILTERING)
        with pytest.raises(InvariantViolationError):
            run.advance(CurationStage.ERRORED)

    def test_cannot_skip_stages(self):
        with pytest.raises(InvariantViolationError):
            CurationRun().advance(CurationStage.SORTING)

    def test_done_is_terminal(self):
        run = CurationRun()
        for stage in ("resolving", "filtering", "sorting", "paginating", "done"):
            run.advance(CurationStage(stage))
        with pytest.raises(InvariantViolationError):
            run.advance(CurationStage.RESOLVING)


def test_tier_stats_empty():
    assert tier_stats([]) == {"total": 0, "by_tier": {"top_pick": 0, "good_buy": 0, "caution": 0}}
