"""Formatting helpers and block builders shared by report modules.

Everything here is pure: no I/O and no state. Numeric inputs may be any
number or a numeric string; anything else is echoed back unchanged.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from typing import Any

from shared.models import (
    ChartBlock,
    ChartPoint,
    ChartSeries,
    DataPoint,
    Summary,
    SummaryKind,
    TableBlock,
    TableHeader,
    TrendData,
    TrendDirection,
)

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
}

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# Changes within this many percentage points count as flat
TREND_THRESHOLD = 0.1


def to_number(value: Any) -> float | None:
    """Coerce a numeric scalar or numeric string to float."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def is_numeric(value: Any) -> bool:
    return to_number(value) is not None


def currency_symbol(currency_code: str) -> str:
    return CURRENCY_SYMBOLS.get(currency_code.upper(), f"{currency_code} ")


def format_currency(value: Any, currency_code: str = "GBP") -> str:
    """Format an amount with its currency symbol and a K/M scale suffix.

    >>> format_currency(999.99, "GBP")
    '£999.99'
    >>> format_currency(2_500_000, "GBP")
    '£2.5M'
    """
    amount = to_number(value)
    if amount is None:
        return str(value)

    symbol = currency_symbol(currency_code)
    if amount >= 1_000_000:
        return f"{symbol}{amount / 1_000_000:.1f}M"
    if amount >= 1_000:
        return f"{symbol}{amount / 1_000:.1f}K"
    return f"{symbol}{amount:.2f}"


def format_percentage(value: Any, decimals: int = 1) -> str:
    amount = to_number(value)
    if amount is None:
        return str(value)
    return f"{amount:.{decimals}f}%"


def format_number(value: Any) -> str:
    """Format a count with a K/M/B scale suffix."""
    amount = to_number(value)
    if amount is None:
        return str(value)

    if amount >= 1_000_000_000:
        return f"{amount / 1_000_000_000:.1f}B"
    if amount >= 1_000_000:
        return f"{amount / 1_000_000:.1f}M"
    if amount >= 1_000:
        return f"{amount / 1_000:.1f}K"
    return f"{amount:.0f}"


def format_duration(value: timedelta | Any) -> str:
    """Format a duration as seconds, minutes, hours or days.

    Accepts a timedelta or a number of seconds.
    """
    if isinstance(value, timedelta):
        seconds = value.total_seconds()
    else:
        seconds = to_number(value)
        if seconds is None:
            return str(value)

    if seconds < 60:
        return f"{seconds:.0f}s"
    if seconds < 3600:
        return f"{seconds / 60:.0f}m"
    if seconds < 86400:
        return f"{seconds / 3600:.1f}h"
    return f"{seconds / 86400:.1f}d"


def trend(current: float, previous: float, period: str) -> TrendData:
    """Compare two values and describe the change."""
    if previous == 0:
        return TrendData(direction=TrendDirection.FLAT, value="N/A", period=period)

    change = (current - previous) / previous * 100
    if change > TREND_THRESHOLD:
        direction = TrendDirection.UP
    elif change < -TREND_THRESHOLD:
        direction = TrendDirection.DOWN
    else:
        direction = TrendDirection.FLAT

    sign = "+" if change > 0 else ""
    return TrendData(direction=direction, value=f"{sign}{change:.1f}%", period=period)


def summary_card(
    title: str,
    value: str,
    subtitle: str = "",
    kind: SummaryKind = SummaryKind.METRIC,
    trend_data: TrendData | None = None,
    healthy: bool = True,
) -> Summary:
    return Summary(
        title=title,
        value=value,
        subtitle=subtitle,
        kind=kind,
        trend=trend_data,
        healthy=healthy,
    )


def extract_value(point: DataPoint, field: str) -> Any:
    """Look a field up on a data point: timestamp, then values, then labels."""
    if field == "timestamp":
        return point.timestamp
    if field in point.values:
        return point.values[field]
    if field in point.labels:
        return point.labels[field]
    return None


def build_chart(
    title: str,
    kind: str,
    points: list[DataPoint],
    x_field: str,
    y_field: str = "",
) -> ChartBlock:
    """Build a chart from data points.

    With a y_field a single "data" series is produced; without one every
    numeric value key becomes its own series.
    """
    series: dict[str, list[ChartPoint]] = {}

    for point in points:
        x = extract_value(point, x_field)
        if y_field:
            y = extract_value(point, y_field)
            if y is not None:
                series.setdefault("data", []).append(ChartPoint(x=x, y=y))
            continue
        for name, value in point.values.items():
            if is_numeric(value):
                series.setdefault(name, []).append(ChartPoint(x=x, y=value))

    return ChartBlock(
        title=title,
        kind=kind,
        x_axis=x_field,
        y_axis=y_field,
        series=[ChartSeries(name=name, data=series[name]) for name in sorted(series)],
    )


def format_column_name(key: str) -> str:
    """Turn instance_class into Instance Class."""
    return " ".join(word[:1].upper() + word[1:] for word in key.split("_"))


def _cell(point: DataPoint, column: str) -> Any:
    if column == "timestamp":
        return point.timestamp.strftime(TIMESTAMP_FORMAT)
    if column in point.values:
        return point.values[column]
    if column in point.labels:
        return point.labels[column]
    return ""


def build_table(
    title: str,
    points: list[DataPoint],
    columns: list[str] | None = None,
) -> TableBlock:
    """Build a table from data points.

    Without explicit columns, every label and value key seen in the points
    plus timestamp becomes a column.
    """
    if not columns:
        keys = {"timestamp"}
        for point in points:
            keys.update(point.labels)
            keys.update(point.values)
        columns = list(keys)
    columns = sorted(columns)

    return TableBlock(
        title=title,
        headers=[TableHeader(key=column, label=format_column_name(column)) for column in columns],
        rows=[{column: _cell(point, column) for column in columns} for point in points],
    )
