from datetime import date, datetime, timezone

import pytest

from app.core.clock import Clock, SystemClock


class TestClock:
    def test_clock_without_now_cannot_be_created(self):
        class IncompleteClock(Clock):
            pass

        with pytest.raises(TypeError):
            IncompleteClock()

    def test_today_uses_business_timezone(self):
        class FixedClock(Clock):
            def now(self):
                return datetime(2025, 5, 31, 20, 0, tzinfo=timezone.utc)

        assert FixedClock("Asia/Kolkata").today() == date(2025, 6, 1)
        assert FixedClock("UTC").today() == date(2025, 5, 31)

    def test_system_clock_is_utc_aware(self):
        assert SystemClock().now().tzinfo is not None
