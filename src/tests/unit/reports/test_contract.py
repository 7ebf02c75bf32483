"""Tests for the checks shared by every report module."""

from datetime import datetime, timezone

import pytest

from dashboard.reports import ReportValidationError, paginate, validate_common_params
from shared.models import ReportParams


class TestReportParamsTimes:
    def test_naive_times_are_utc(self):
        """A naive window bound is read as UTC."""
        params = ReportParams(start_time=datetime(2025, 6, 1), end_time=datetime(2025, 6, 5, 12, 30))

        assert params.start_time == datetime(2025, 6, 1, tzinfo=timezone.utc)
        assert params.end_time.tzinfo == timezone.utc

    def test_aware_times_are_kept(self):
        """Test aware times pass through unchanged."""
        start = datetime(2025, 6, 1, 9, tzinfo=timezone.utc)

        assert ReportParams(start_time=start).start_time == start


class TestValidateCommonParams:
    def test_mixed_awareness_window_is_accepted(self):
        """One aware and one naive bound compare without error."""
        params = ReportParams(
            start_time=datetime(2025, 6, 1, tzinfo=timezone.utc),
            end_time=datetime(2025, 6, 5),
        )

        validate_common_params(params)

    def test_mixed_awareness_inverted_window(self):
        """Test an inverted window is rejected whatever the zones."""
        params = ReportParams(
            start_time=datetime(2025, 6, 5, tzinfo=timezone.utc),
            end_time=datetime(2025, 6, 1),
        )

        with pytest.raises(ReportValidationError):
            validate_common_params(params)

    @pytest.mark.parametrize(
        "params",
        [
            ReportParams(limit=-1),
            ReportParams(offset=-1),
            ReportParams(sort_order="sideways"),
        ],
    )
    def test_rejected(self, params):
        """Test pagination and sort order bounds."""
        with pytest.raises(ReportValidationError):
            validate_common_params(params)

    def test_sort_order_is_case_insensitive(self):
        """Test sort order ignores case."""
        validate_common_params(ReportParams(sort_order="DESC"))


class TestPaginate:
    def test_offset_and_limit(self):
        """Test offset is applied before limit."""
        assert paginate(list(range(10)), ReportParams(offset=2, limit=3)) == [2, 3, 4]

    def test_zero_limit_means_all(self):
        """Test a zero limit keeps every row after the offset."""
        assert paginate([1, 2, 3], ReportParams(offset=1)) == [2, 3]
