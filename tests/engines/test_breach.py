"""
Tests for breach severity assessment and breach reporting.
"""

from datetime import timedelta

import pytest
from hypothesis import given
from hypothesis import strategies as st

from compliance_engines.breach import (
    BreachFacts,
    BreachRules,
    RiskToRights,
    Severity,
    assess,
    assess_breach_severity,
    report_breach,
)

RULES = BreachRules(sensitive_data_types=frozenset({"financial", "health", "criminal", "biometric", "genetic"}))


class TestSeverityTable:

    def test_nothing_affected_is_low(self):
        result = assess([], 0, "confidentiality", RULES)
        assert result.severity is Severity.LOW
        assert result.risk_to_rights is RiskToRights.UNLIKELY
        assert not result.notification_required
        assert result.rule == "nothing_affected"

    def test_sensitive_data_is_high(self):
        result = assess(["health"], 5, "availability", RULES)
        assert result.severity is Severity.HIGH
        assert result.risk_to_rights is RiskToRights.LIKELY
        assert result.notification_required

    def test_mass_breach_is_high(self):
        assert assess(["email"], 1001, "integrity", RULES).severity is Severity.HIGH

    def test_threshold_is_exclusive(self):
        assert assess(["email"], 1000, "integrity", RULES).severity is Severity.MEDIUM
        assert assess(["email"], 100, "integrity", RULES).severity is Severity.LOW

    def test_many_subjects_is_medium_with_notification(self):
        result = assess(["email"], 150, "availability", RULES)
        assert result.severity is Severity.MEDIUM
        assert result.notification_required
        assert result.rule == "many_subjects"

    def test_confidentiality_exposure_is_medium_without_notification(self):
        result = assess(["email"], 3, "confidentiality", RULES)
        assert result.severity is Severity.MEDIUM
        assert result.risk_to_rights is RiskToRights.POSSIBLE
        assert not result.notification_required

    def test_small_availability_breach_is_low(self):
        result = assess(["email"], 3, "availability", RULES)
        assert result.severity is Severity.LOW
        assert result.rule == "default"

    def test_data_types_are_normalized(self):
        assert assess([" Health "], 1, "availability", RULES).severity is Severity.HIGH

    def test_negative_subjects_rejected(self):
        with pytest.raises(ValueError):
            BreachFacts(frozenset(), -1, "confidentiality")

    def test_thresholds_must_be_ordered(self):
        with pytest.raises(ValueError):
            BreachRules(high_subject_threshold=10, medium_subject_threshold=100)

    def test_emits_engine_trace(self, captured_logs):
        assess_breach_severity(BreachFacts(frozenset({"email"}), 1, "integrity"), RULES)
        traces = [r for r in captured_logs() if r["message"] == "COMPLIANCE_ENGINE_TRACE"]
        assert traces[-1]["engine_name"] == "breach_severity"

    @given(
        st.frozensets(st.sampled_from(["email", "name", "health", "financial", "address"])),
        st.integers(min_value=0, max_value=5000),
        st.sampled_from(["confidentiality", "integrity", "availability"]),
    )
    def test_notification_implies_at_least_medium(self, types, count, breach_type):
        result = assess(types, count, breach_type, RULES)
        if result.notification_required:
            assert result.severity in (Severity.MEDIUM, Severity.HIGH)
        if types & RULES.sensitive_data_types:
            assert result.severity is Severity.HIGH


class TestReportBreach:

    def test_derived_values(self, deterministic_clock):
        outcome = report_breach(
            "tenant-1", "confidentiality", ["financial"], 10, deterministic_clock, RULES,
            description="Laptop stolen",
        )
        breach = outcome.value
        assert breach.severity is Severity.HIGH
        assert breach.notification_required
        assert not breach.is_overridden
        assert breach.breach_number.startswith("BREACH-2024-")
        assert breach.notification_deadline == breach.discovered_at + timedelta(hours=72)

    def test_overrides_win_and_are_recorded(self, deterministic_clock):
        breach = report_breach(
            "tenant-1", "availability", ["email"], 3, deterministic_clock, RULES,
            severity="high", notification_required=True,
        ).value
        assert breach.severity is Severity.HIGH
        assert breach.notification_required
        assert breach.assessment.severity is Severity.LOW
        assert breach.overridden_fields == frozenset({"severity", "notification_required"})

    def test_invalid_inputs_collected(self, deterministic_clock):
        outcome = report_breach(
            "tenant-1", "theft", [], -2, deterministic_clock, RULES,
            severity="catastrophic", risk_to_rights="certain",
        )
        assert set(outcome.codes) == {
            "INVALID_BREACH_TYPE", "INVALID_SUBJECT_COUNT", "INVALID_SEVERITY", "INVALID_RISK",
        }

    def test_single_string_data_type_rejected(self, deterministic_clock):
        outcome = report_breach("tenant-1", "confidentiality", "health", 5, deterministic_clock, RULES)
        assert outcome.codes == ("INVALID_DATA_TYPES",)

    def test_single_string_rejected_by_facts(self):
        with pytest.raises(TypeError):
            BreachFacts(data_types_affected="health", data_subjects_affected=5, breach_type="confidentiality")
        with pytest.raises(TypeError):
            assess("health", 5, "confidentiality", RULES)

    def test_notification_overdue(self, deterministic_clock):
        breach = report_breach("tenant-1", "confidentiality", ["health"], 1, deterministic_clock, RULES).value
        assert not breach.is_notification_overdue(deterministic_clock.now() + timedelta(hours=71))
        assert breach.is_notification_overdue(deterministic_clock.now() + timedelta(hours=73))

    def test_discovered_earlier_than_reported(self, deterministic_clock):
        discovered = deterministic_clock.now() - timedelta(hours=48)
        breach = report_breach(
            "tenant-1", "confidentiality", ["health"], 1, deterministic_clock, RULES,
            discovered_at=discovered,
        ).value
        assert breach.notification_deadline == discovered + timedelta(hours=72)
        assert breach.reported_at == deterministic_clock.now()

    def test_required_notification_is_logged(self, deterministic_clock, captured_logs):
        report_breach("tenant-1", "confidentiality", ["health"], 1, deterministic_clock, RULES)
        assert any(r["message"] == "breach_notification_required" for r in captured_logs())
