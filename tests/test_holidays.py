from datetime import date, datetime

import pytest

from rotinas.utils.holidays import easter, holiday_name, is_business_day, is_holiday, next_business_day


@pytest.mark.parametrize("year, expected", [
    (2024, date(2024, 3, 31)),
    (2025, date(2025, 4, 20)),
    (2030, date(2030, 4, 21)),
])
def test_easter(year, expected):
    assert easter(year) == expected


def test_movable_holidays_2024():
    assert holiday_name(date(2024, 2, 12)) == "Carnaval (segunda)"
    assert holiday_name(date(2024, 2, 13)) == "Carnaval (terça)"
    assert holiday_name(date(2024, 3, 29)) == "Sexta-feira Santa"
    assert holiday_name(date(2024, 5, 30)) == "Corpus Christi"
    assert not is_holiday(date(2024, 2, 14))  # quarta de cinzas não entra


def test_fixed_holidays_accept_datetime():
    assert holiday_name(datetime(2024, 4, 21, 15, 30)) == "Tiradentes"
    assert is_holiday(date(2031, 12, 25))


def test_business_days():
    assert not is_business_day(date(2024, 12, 25))
    assert not is_business_day(date(2024, 12, 28))  # sábado
    assert is_business_day(date(2024, 12, 26))


def test_next_business_day_keeps_time():
    assert next_business_day(datetime(2024, 12, 28, 10, 0)) == datetime(2024, 12, 30, 10, 0)
    assert next_business_day(datetime(2024, 2, 10)) == datetime(2024, 2, 14)  # fim de semana + carnaval
    assert next_business_day(date(2024, 12, 26)) == date(2024, 12, 26)
