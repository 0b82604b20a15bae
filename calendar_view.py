import calendar
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from models import DayIndicator
from task_cache import TaskCache

# 日历格子里的标记
MARKERS = {
    DayIndicator.none: " ",
    DayIndicator.low: ".",
    DayIndicator.medium: "o",
    DayIndicator.high: "!",
    DayIndicator.completed: "v",
}


@dataclass(frozen=True)
class DayCell:
    day: date
    in_month: bool
    indicator: DayIndicator


def month_weeks(year: int, month: int, first_weekday: int = calendar.SUNDAY) -> List[List[date]]:
    """覆盖整个月的若干周，每周 7 天，默认周日开头"""
    cal = calendar.Calendar(firstweekday=first_weekday)
    days = list(cal.itermonthdates(year, month))
    return [days[i:i + 7] for i in range(0, len(days), 7)]


def month_grid(cache: TaskCache, year: int, month: int,
               first_weekday: int = calendar.SUNDAY) -> List[List[DayCell]]:
    weeks = []
    for week in month_weeks(year, month, first_weekday):
        row = []
        for day in week:
            in_month = day.month == month
            # 不在本月的日子不显示标记
            indicator = cache.highest_priority_for_date(day) if in_month else DayIndicator.none
            row.append(DayCell(day, in_month, indicator))
        weeks.append(row)
    return weeks


def render_month(cache: TaskCache, year: int, month: int,
                 first_weekday: int = calendar.SUNDAY, selected: Optional[date] = None) -> str:
    header = date(year, month, 1).strftime("%B %Y")
    names = [calendar.day_abbr[(first_weekday + i) % 7][:2] for i in range(7)]
    lines = [header.center(28).rstrip(), " ".join(f"{n:>3}" for n in names)]
    for week in month_grid(cache, year, month, first_weekday):
        cells = []
        for cell in week:
            if not cell.in_month:
                cells.append("   ")
                continue
            mark = "*" if cell.day == selected else MARKERS[cell.indicator]
            cells.append(f"{cell.day.day:>2}{mark}")
        lines.append(" ".join(cells).rstrip())
    return "\n".join(lines)
