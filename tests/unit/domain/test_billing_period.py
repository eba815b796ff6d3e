"""Unit tests for invoice month helpers"""

from datetime import date, datetime
from src.domain.billing_period import invoice_month_for, is_final_run, month_end, next_month_start


class TestInvoiceMonth:
    """Test invoice month selection"""

    def test_defaults_to_previous_month(self):
        assert invoice_month_for(datetime(2024, 2, 15, 10, 30)) == date(2024, 1, 1)

    def test_january_rolls_back_to_december(self):
        assert invoice_month_for(datetime(2024, 1, 2)) == date(2023, 12, 1)

    def test_explicit_month(self):
        assert invoice_month_for(datetime(2024, 6, 1), year=2023, month=11) == date(2023, 11, 1)

    def test_month_boundaries(self):
        assert next_month_start(date(2023, 12, 31)) == date(2024, 1, 1)
        assert month_end(date(2024, 2, 10)) == date(2024, 2, 29)
        assert month_end(date(2023, 2, 10)) == date(2023, 2, 28)


class TestFinalRun:
    """Test when invoice rows become final"""

    def test_final_from_configured_day_of_next_month(self):
        january = date(2024, 1, 1)

        assert not is_final_run(january, datetime(2024, 2, 2, 23, 59), final_day=3)
        assert is_final_run(january, datetime(2024, 2, 3), final_day=3)
        assert is_final_run(january, datetime(2024, 5, 1), final_day=3)

    def test_current_month_is_never_final(self):
        assert not is_final_run(date(2024, 2, 1), datetime(2024, 2, 20), final_day=1)
