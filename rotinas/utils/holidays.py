"""Feriados nacionais (fixos e móveis, a partir da Páscoa) e dias úteis."""
from __future__ import annotations

from datetime import date, datetime, timedelta
from functools import lru_cache

FIXED_HOLIDAYS = {
    (1, 1): "Confraternização Universal",
    (4, 21): "Tiradentes",
    (5, 1): "Dia do Trabalhador",
    (9, 7): "Independência do Brasil",
    (10, 12): "Nossa Senhora Aparecida",
    (11, 2): "Finados",
    (11, 15): "Proclamação da República",
    (12, 25): "Natal",
}

# dias em relação ao domingo de Páscoa
MOVABLE_HOLIDAYS = {
    -48: "Carnaval (segunda)",
    -47: "Carnaval (terça)",
    -2: "Sexta-feira Santa",
    0: "Páscoa",
    60: "Corpus Christi",
}


def easter(year: int) -> date:
    """Domingo de Páscoa (algoritmo de Meeus/Jones/Butcher)."""
    a = year % 19
    b, c = divmod(year, 100)
    d, e = divmod(b, 4)
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i, k = divmod(c, 4)
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    month, day = divmod(h + l - 7 * m + 114, 31)
    return date(year, month, day + 1)


@lru_cache(maxsize=32)
def holidays_for(year: int) -> dict[date, str]:
    result = {date(year, m, d): name for (m, d), name in FIXED_HOLIDAYS.items()}
    sunday = easter(year)
    for offset, name in MOVABLE_HOLIDAYS.items():
        result[sunday + timedelta(days=offset)] = name
    return result


def _as_date(value) -> date:
    return value.date() if isinstance(value, datetime) else value


def holiday_name(value) -> str | None:
    day = _as_date(value)
    return holidays_for(day.year).get(day)


def is_holiday(value) -> bool:
    return holiday_name(value) is not None


def is_business_day(value) -> bool:
    day = _as_date(value)
    return day.weekday() < 5 and not is_holiday(day)


def next_business_day(value):
    """A própria data se já for dia útil; senão o próximo (mesmo horário)."""
    while not is_business_day(value):
        value = value + timedelta(days=1)
    return value
