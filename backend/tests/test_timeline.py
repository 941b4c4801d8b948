import datetime

from assetsync.analytics.timeline import align_portfolio_timeline, choose_driver
from assetsync.schemas.asset import PriceHistoryPoint
from assetsync.schemas.portfolio import Holding

D1 = datetime.date(2024, 1, 2)
D2 = datetime.date(2024, 1, 3)
D3 = datetime.date(2024, 1, 4)


def _history(*points: tuple[datetime.date, float]) -> list[PriceHistoryPoint]:
    return [PriceHistoryPoint(date=day, close=close) for day, close in points]


def test_dates_missing_for_any_holding_are_dropped() -> None:
    holdings = [Holding(symbol="A", quantity=2), Holding(symbol="B", quantity=1)]
    histories = {
        "A": _history((D1, 10.0), (D2, 11.0), (D3, 12.0)),
        "B": _history((D3, 100.0), (D1, 90.0)),
    }

    timeline = align_portfolio_timeline(holdings, histories)

    assert [point.date for point in timeline] == [D1, D3]
    assert [point.aggregate_value for point in timeline] == [110.0, 124.0]


def test_shortest_history_drives_the_window() -> None:
    holdings = [Holding(symbol="OLD", quantity=1), Holding(symbol="NEW", quantity=1)]
    histories = {
        "OLD": _history((datetime.date(2020, 1, 2), 5.0), (D1, 6.0), (D2, 7.0), (D3, 8.0)),
        "NEW": _history((D2, 1.0), (D3, 2.0)),
    }

    assert choose_driver(holdings, histories) == "NEW"
    timeline = align_portfolio_timeline(holdings, histories)
    assert [point.date for point in timeline] == [D2, D3]
    assert [point.aggregate_value for point in timeline] == [8.0, 10.0]


def test_any_empty_history_yields_empty_series() -> None:
    holdings = [Holding(symbol="A", quantity=1), Holding(symbol="B", quantity=1)]
    histories = {"A": _history((D1, 1.0)), "B": []}

    assert align_portfolio_timeline(holdings, histories) == []
    assert align_portfolio_timeline(holdings, {"A": _history((D1, 1.0))}) == []
    assert align_portfolio_timeline([], {}) == []


def test_output_is_ascending() -> None:
    holdings = [Holding(symbol="A", quantity=1)]
    histories = {"A": _history((D3, 3.0), (D1, 1.0), (D2, 2.0))}

    timeline = align_portfolio_timeline(holdings, histories)

    assert [point.date for point in timeline] == [D1, D2, D3]
