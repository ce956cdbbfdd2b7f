"""
Tests for tier limit checks and feature gating against the default catalog.
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from compliance_engines.tier_limits import (
    LimitedResource,
    TierCatalog,
    TierDefinition,
    TierLimits,
    check_customer_limit,
    check_limit,
    check_record_limit,
    check_user_limit,
    has_feature,
    minimum_tier_for,
    resolve_tier,
    tier_at_least,
)


@pytest.fixture
def catalog(config) -> TierCatalog:
    return config.tier_catalog


class TestRecordLimit:

    def test_free_tier_at_limit_is_denied(self, catalog):
        check = check_record_limit("free", 50, catalog)
        assert not check.allowed
        assert check.remaining == 0
        assert check.limit == 50

    def test_free_tier_one_below_limit(self, catalog):
        check = check_record_limit("free", 49, catalog)
        assert check.allowed
        assert check.remaining == 1

    def test_pro_is_unlimited(self, catalog):
        check = check_record_limit("pro", 1_000_000, catalog)
        assert check.allowed
        assert check.is_unlimited
        assert check.remaining is None

    def test_over_limit_remaining_never_negative(self, catalog):
        assert check_record_limit("free", 75, catalog).remaining == 0

    def test_denial_is_logged(self, catalog, captured_logs):
        check_record_limit("free", 50, catalog)
        assert any(r["message"] == "tier_limit_reached" for r in captured_logs())


class TestOtherResources:

    def test_user_limit(self, catalog):
        assert not check_user_limit("free", 1, catalog).allowed
        assert check_user_limit("basic", 2, catalog).allowed

    def test_customer_limit(self, catalog):
        assert check_customer_limit("basic", 199, catalog).remaining == 1
        assert check_customer_limit("enterprise", 10**9, catalog).allowed

    def test_resource_by_name(self, catalog):
        assert check_limit("customers", "free", 25, catalog).resource is LimitedResource.CUSTOMERS

    def test_unknown_resource(self, catalog):
        with pytest.raises(ValueError):
            check_limit("projects", "free", 0, catalog)

    def test_negative_count_rejected(self, catalog):
        with pytest.raises(ValueError):
            check_record_limit("free", -1, catalog)


class TestTierResolution:

    def test_unknown_tier_falls_back_to_lowest(self, catalog):
        check = check_record_limit("platinum", 50, catalog)
        assert check.is_fallback
        assert check.tier == "free"
        assert not check.allowed

    def test_alias_and_case(self, catalog):
        resolution = resolve_tier("Starter", catalog)
        assert resolution.tier.name == "basic"
        assert not resolution.is_fallback

    def test_catalog_orders_by_rank(self):
        limits = TierLimits(max_users=1, max_records=1, max_customers=1)
        catalog = TierCatalog.of([
            TierDefinition("high", 5, limits),
            TierDefinition("low", 1, limits),
        ])
        assert catalog.names == ("low", "high")
        assert catalog.lowest.name == "low"

    def test_empty_catalog_rejected(self):
        with pytest.raises(ValueError):
            TierCatalog.of([])

    def test_zero_limit_rejected(self):
        with pytest.raises(ValueError):
            TierLimits(max_users=0, max_records=None, max_customers=None)


class TestFeatures:

    def test_has_feature(self, catalog):
        assert has_feature("pro", "timesheets", catalog)
        assert not has_feature("free", "timesheets", catalog)

    def test_unknown_feature_fails_closed(self, catalog):
        assert not has_feature("enterprise", "teleportation", catalog)

    def test_unknown_tier_enables_nothing(self, catalog):
        assert has_feature("free", "basic_analytics", catalog)
        assert not has_feature("platinum", "basic_analytics", catalog)
        assert resolve_tier("platinum", catalog).is_fallback

    def test_minimum_tier_for(self, catalog):
        assert minimum_tier_for("invoicing", catalog) == "basic"
        assert minimum_tier_for("priority_support", catalog) == "enterprise"
        assert minimum_tier_for("teleportation", catalog) is None

    def test_tier_at_least(self, catalog):
        assert tier_at_least("pro", "basic", catalog)
        assert not tier_at_least("free", "pro", catalog)

    def test_tier_at_least_unknown_minimum(self, catalog):
        with pytest.raises(ValueError):
            tier_at_least("pro", "platinum", catalog)


class TestLimitProperties:

    @given(st.integers(min_value=0, max_value=10_000))
    def test_allowed_iff_below_limit(self, count):
        limits = TierLimits(max_users=None, max_records=50, max_customers=None)
        catalog = TierCatalog.of([TierDefinition("free", 0, limits)])
        check = check_record_limit("free", count, catalog)
        assert check.allowed == (count < 50)
        assert check.remaining == max(0, 50 - count)
