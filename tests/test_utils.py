from datetime import datetime
from decimal import Decimal

import pytest

from farmsales.config.settings import (
    DevelopmentSettings, ProductionSettings, Settings, TestingSettings, get_settings_by_env
)
from farmsales.schemas.order import Order
from farmsales.schemas.snapshots import OrderItemSnapshot, OrderSnapshot, ProductSnapshot
from farmsales.utils.date_utils import FixedClock, format_date
from farmsales.utils.money_utils import format_money, quantize_mass, quantize_money, to_decimal


class TestFarmClock:
    @pytest.mark.parametrize("hour, minute, off_hours", [
        (5, 59, True),
        (6, 0, False),
        (17, 59, False),
        (18, 0, True),
        (23, 30, True),
    ])
    def test_working_hours_window(self, hour, minute, off_hours):
        clock = FixedClock(datetime(2024, 3, 15, hour, minute))
        assert clock.is_off_hours() is off_hours

    def test_naive_datetimes_are_read_as_utc(self):
        clock = FixedClock(datetime(2024, 3, 15, 12, 0))
        # Colombo is UTC+05:30
        assert clock.is_off_hours(datetime(2024, 3, 15, 0, 15))
        assert not clock.is_off_hours(datetime(2024, 3, 15, 0, 45))

    def test_custom_window(self):
        clock = FixedClock(datetime(2024, 3, 15, 19, 0), working_hours_start=8, working_hours_end=20)
        assert not clock.is_off_hours()

    def test_display_format(self):
        clock = FixedClock(datetime(2024, 3, 15, 20, 30))
        assert format_date(clock.now(), "display") == "15 Mar 2024, 08:30 PM"
        assert format_date(clock.now(), "compact") == "20240315"
        assert format_date(None) == ""


class TestMoney:
    def test_floats_convert_through_their_repr(self):
        assert to_decimal(0.1) == Decimal("0.1")
        assert to_decimal(None) == Decimal("0")
        assert to_decimal("", default=Decimal("1")) == Decimal("1")

    def test_non_numeric_values_are_rejected(self):
        with pytest.raises(ValueError):
            to_decimal("twelve")

    def test_half_up_rounding(self):
        assert quantize_money("2.345") == Decimal("2.35")
        assert quantize_money("2.344") == Decimal("2.34")
        assert quantize_mass("1.0005") == Decimal("1.001")

    def test_format_money(self):
        assert format_money(Decimal("2360")) == "2,360.00"
        assert format_money("0.125") == "0.13"


def test_settings_by_environment():
    assert isinstance(get_settings_by_env("development"), DevelopmentSettings)
    assert get_settings_by_env("production").LOG_LEVEL == "WARNING"

    testing = get_settings_by_env("testing")
    assert isinstance(testing, TestingSettings)
    assert testing.EMAIL_ENABLED is False

    fallback = get_settings_by_env("staging")
    assert type(fallback) is Settings
    assert fallback.VAT_RATE == Decimal("0.18")
    assert not isinstance(fallback, ProductionSettings)


def test_schema_config():
    for snapshot in (ProductSnapshot, OrderItemSnapshot, OrderSnapshot):
        assert snapshot.model_config["frozen"] is True
        assert snapshot.model_config["from_attributes"] is True
    assert Order.model_config["from_attributes"] is True
