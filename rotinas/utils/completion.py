from __future__ import annotations

from typing import Iterable

# faixas de cor dos percentuais (cards, painel de detalhe, dashboard)
SUCCESS = "success"
GOOD = "good"
WARNING = "warning"
DANGER = "danger"


def percentage(completed: int, total: int) -> int:
    if total == 0:
        return 0
    # arredonda meio para cima, como Math.round
    return int(100 * completed / total + 0.5)


def bucket(pct: int) -> str:
    if pct == 100:
        return SUCCESS
    if pct >= 70:
        return GOOD
    if pct >= 40:
        return WARNING
    return DANGER


def summarize(flags: Iterable[bool]) -> dict:
    """Resumo {completed, pending, total, percentage, bucket} a partir de flags de conclusão."""
    completed = total = 0
    for done in flags:
        total += 1
        if done:
            completed += 1
    pct = percentage(completed, total)
    return {
        "completed": completed,
        "pending": total - completed,
        "total": total,
        "percentage": pct,
        "bucket": bucket(pct),
    }


def checkin_summary(checkins) -> dict:
    return summarize(c.status == "completed" for c in checkins)
