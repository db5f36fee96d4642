"""Janelas de período das rotinas a partir da frequência."""
from __future__ import annotations

import calendar
from datetime import datetime, timedelta

from .holidays import next_business_day


def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=23, minute=59, second=59, microsecond=999999)


def start_of_week(dt: datetime) -> datetime:
    # semana começa na segunda-feira
    return start_of_day(dt - timedelta(days=dt.weekday()))


def period_window(frequency: str, reference: datetime | None = None) -> tuple[datetime, datetime]:
    """
    Retorna (início, fim) do período corrente para a frequência.

    diaria    -> hoje inteiro
    semanal   -> segunda 00:00 até domingo 23:59:59 da mesma semana
    quinzenal -> segunda desta semana até domingo da semana seguinte
    mensal    -> mês civil

    Qualquer outra frequência (anual, customizada, desconhecida) cai na
    regra diária sem erro.
    """
    now = reference or datetime.now()

    if frequency == "semanal":
        start = start_of_week(now)
        return start, end_of_day(start + timedelta(days=6))

    if frequency == "quinzenal":
        start = start_of_week(now)
        return start, end_of_day(start + timedelta(days=13))

    if frequency == "mensal":
        last_day = calendar.monthrange(now.year, now.month)[1]
        start = start_of_day(now.replace(day=1))
        return start, end_of_day(now.replace(day=last_day))

    return start_of_day(now), end_of_day(now)


def next_period_window(frequency: str, current_end: datetime) -> tuple[datetime, datetime]:
    """Janela imediatamente posterior a um período que termina em ``current_end``."""
    return period_window(frequency, start_of_day(current_end) + timedelta(days=1))


# --------------------------
# Agendamento (recurrence_mode="schedule")
# --------------------------

STEP_DAYS = {"diaria": 1, "semanal": 7, "quinzenal": 14}


def nth_weekday_day(year: int, month: int, nth: int, weekday: int) -> int:
    """Dia do mês da n-ésima ocorrência do dia da semana; sem 5ª ocorrência, a última."""
    first = datetime(year, month, 1).weekday()
    day = 1 + (weekday - first) % 7 + (nth - 1) * 7
    if day > calendar.monthrange(year, month)[1]:
        day -= 7
    return day


def _next_month_start(start: datetime, anchor: datetime | None, monthly_anchor: str) -> datetime:
    year, month = (start.year + 1, 1) if start.month == 12 else (start.year, start.month + 1)
    last_day = calendar.monthrange(year, month)[1]
    ref = anchor or start

    if anchor is not None and monthly_anchor == "weekday":
        nth = (ref.day - 1) // 7 + 1
        day = nth_weekday_day(year, month, nth, ref.weekday())
    else:
        day = min(ref.day, last_day)
    return start_of_day(start.replace(year=year, month=month, day=day))


def scheduled_end(frequency: str, start: datetime, anchor: datetime | None = None,
                  monthly_anchor: str = "date") -> datetime:
    """Fim da janela que começa em ``start``: véspera do próximo início."""
    if frequency == "mensal":
        following = _next_month_start(start, anchor, monthly_anchor)
        return end_of_day(following - timedelta(days=1))
    return end_of_day(start + timedelta(days=STEP_DAYS.get(frequency, 1) - 1))


def shift_to_business_day(start: datetime, end: datetime) -> tuple[datetime, datetime]:
    """Empurra o início para o próximo dia útil; o fim só acompanha se ficar antes do início."""
    shifted = next_business_day(start)
    if shifted > end:
        end = end_of_day(shifted)
    return shifted, end


def next_occurrence(
    frequency: str,
    current_start: datetime,
    anchor: datetime | None = None,
    skip_weekends_holidays: bool = False,
    monthly_anchor: str = "date",
) -> tuple[datetime, datetime]:
    """
    Próxima janela depois da que começa em ``current_start``.

    - mensal: mesmo dia do mês da âncora (limitado ao último dia) ou, com
      ``monthly_anchor="weekday"``, a mesma n-ésima semana/dia da semana;
    - semanal/quinzenal: avança 7/14 dias e volta ao dia da semana da âncora;
    - demais: dia seguinte.

    A âncora evita o deslocamento acumulado quando uma janela anterior foi
    empurrada para um dia útil.
    """
    if frequency == "mensal":
        base = current_start
        if anchor is not None and current_start.day < 7 and anchor.day > 21:
            # janela anterior empurrada para o começo do mês seguinte
            base = start_of_day(current_start.replace(day=1) - timedelta(days=1))
        start = _next_month_start(base, anchor, monthly_anchor)
    else:
        start = start_of_day(current_start + timedelta(days=STEP_DAYS.get(frequency, 1)))
        if anchor is not None and frequency in ("semanal", "quinzenal"):
            # volta ao dia da semana da âncora mais próximo (-3..+3 dias)
            start += timedelta(days=(anchor.weekday() - start.weekday() + 3) % 7 - 3)

    end = scheduled_end(frequency, start, anchor, monthly_anchor)
    if skip_weekends_holidays:
        start, end = shift_to_business_day(start, end)
    return start, end
