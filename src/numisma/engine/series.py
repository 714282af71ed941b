"""Historical valuation series: append, query and bucket a portfolio's value log.

The series is append-mostly. Each tick writes one ACTIVE record and demotes
the previous ACTIVE record to HISTORICAL; the store does both in one
transaction. HISTORICAL records never change.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional, Union

import pandas as pd

from numisma.engine.ledger import ZERO
from numisma.models.temporal import as_utc
from numisma.models.valuation import (
    Bucket,
    DateStatus,
    HistoricalValuation,
    ValuationRange,
    ValuationStats,
)

if TYPE_CHECKING:
    from numisma.db.protocols import ValuationStore

logger = logging.getLogger(__name__)

# pandas offset aliases per bucket; "W" weeks end on Sunday
_BUCKET_RULES = {
    Bucket.DAY: "D",
    Bucket.WEEK: "W",
    Bucket.MONTH: "MS",
}


class ValuationQuery:
    """Lazy, restartable view over a stored series.

    Nothing is read until iteration starts, and every iteration re-runs the
    store query, so no cursor state survives between passes.
    """

    def __init__(
        self,
        store: ValuationStore,
        portfolio_id: str,
        range: Optional[ValuationRange] = None,
        date_status: Optional[DateStatus] = None,
    ) -> None:
        self._store = store
        self.portfolio_id = portfolio_id
        self.range = range or ValuationRange()
        self.date_status = date_status

    def __iter__(self) -> Iterator[HistoricalValuation]:
        return self._store.iter_valuations(
            self.portfolio_id,
            start=self.range.start,
            end=self.range.end,
            date_status=self.date_status,
            limit=self.range.limit,
        )

    def to_list(self) -> list[HistoricalValuation]:
        return list(self)

    def __repr__(self) -> str:
        return f"ValuationQuery(portfolio_id={self.portfolio_id!r}, range={self.range!r})"


class ValuationSeries:
    """Valuation log for all portfolios held in one store.

    Example:
        series = ValuationSeries(store)
        series.append("p1", Decimal("1000"), datetime.now(timezone.utc))
        for point in series.query("p1"):
            ...
    """

    def __init__(self, store: ValuationStore) -> None:
        self.store = store

    def append(
        self,
        portfolio_id: str,
        value: Union[Decimal, int, str],
        timestamp: datetime,
    ) -> HistoricalValuation:
        """Record the portfolio value at *timestamp*.

        - an ACTIVE record at the same timestamp is overwritten
        - a PROJECTED record at the same timestamp is replaced
        - an older timestamp is back-filled as a retroactive HISTORICAL record
        - otherwise the new record becomes ACTIVE and the old one is demoted

        Raises:
            DuplicateTimestamp: If a HISTORICAL record exists at *timestamp*.
            ValueError: If *value* is negative.
        """
        amount = Decimal(str(value))
        if amount < ZERO:
            raise ValueError(f"Valuation must be non-negative, got {amount}")
        record = self.store.append(portfolio_id, amount, as_utc(timestamp))
        logger.debug(
            f"Valuation {record.id} for {portfolio_id}: {amount} at "
            f"{record.timestamp.isoformat()} ({record.date_status.value})"
        )
        return record

    def project(
        self,
        portfolio_id: str,
        value: Union[Decimal, int, str],
        timestamp: datetime,
    ) -> HistoricalValuation:
        """Record a forecast value after the ACTIVE timestamp.

        Raises:
            ValueError: If *timestamp* is not after the ACTIVE record.
        """
        amount = Decimal(str(value))
        if amount < ZERO:
            raise ValueError(f"Valuation must be non-negative, got {amount}")
        return self.store.add_projection(portfolio_id, amount, as_utc(timestamp))

    def active(self, portfolio_id: str) -> Optional[HistoricalValuation]:
        """The current ACTIVE record, if any valuation exists."""
        return self.store.get_active(portfolio_id)

    def query(
        self,
        portfolio_id: str,
        range: Optional[ValuationRange] = None,
        date_status: Optional[DateStatus] = None,
    ) -> ValuationQuery:
        """Chronological valuations for *portfolio_id*, read lazily."""
        return ValuationQuery(self.store, portfolio_id, range=range, date_status=date_status)


def aggregate(
    series: Iterable[HistoricalValuation],
    bucket: Union[Bucket, str],
) -> list[HistoricalValuation]:
    """Reduce *series* to one valuation per bucket: the last one observed.

    Buckets are calendar days, weeks (ending Sunday) or months, in UTC.
    Empty buckets are dropped.
    """
    rule = _BUCKET_RULES[Bucket(bucket)]
    points = sorted(series, key=lambda v: as_utc(v.timestamp))
    if not points:
        return []

    # Resample row positions rather than the Decimal values themselves
    frame = pd.DataFrame(
        {"row": range(len(points))},
        index=pd.DatetimeIndex([as_utc(v.timestamp) for v in points]),
    )
    last_rows = frame.resample(rule)["row"].last().dropna()
    return [points[int(row)] for row in last_rows]


def series_stats(series: Iterable[HistoricalValuation]) -> ValuationStats:
    """Count, extremes, average and overall change of a series."""
    points = sorted(series, key=lambda v: as_utc(v.timestamp))
    if not points:
        return ValuationStats(
            count=0,
            latest=None,
            oldest=None,
            highest=None,
            lowest=None,
            average=None,
            change=ZERO,
            change_percent=0.0,
        )

    values = [v.value for v in points]
    oldest, latest = values[0], values[-1]
    change = latest - oldest
    return ValuationStats(
        count=len(values),
        latest=latest,
        oldest=oldest,
        highest=max(values),
        lowest=min(values),
        average=sum(values, ZERO) / len(values),
        change=change,
        change_percent=float(change / oldest * 100) if oldest != ZERO else 0.0,
    )
