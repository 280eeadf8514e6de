from signalforge.data.providers import (
    DataUnavailableError,
    FallbackHistoryProvider,
    HistoricalDataProvider,
    SyntheticHistoryProvider,
    YFinanceHistoryProvider,
)
from signalforge.data.repository import StockRepository
from signalforge.data.sinks import (
    InMemorySignalStore,
    SignalBroadcaster,
    SignalStore,
    SubscriberBroadcaster,
)

__all__ = [
    "DataUnavailableError",
    "FallbackHistoryProvider",
    "HistoricalDataProvider",
    "InMemorySignalStore",
    "SignalBroadcaster",
    "SignalStore",
    "StockRepository",
    "SubscriberBroadcaster",
    "SyntheticHistoryProvider",
    "YFinanceHistoryProvider",
]
