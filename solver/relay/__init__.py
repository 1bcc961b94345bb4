"""Transaction relay: direct broadcast and private bundles."""

from solver.relay.dispatcher import RelayDispatcher, RelayReport, RelayState, RelayStrategy
from solver.relay.flashbots import BundleResolution, FlashbotsRelay, RelayError

__all__ = [
    "BundleResolution",
    "FlashbotsRelay",
    "RelayDispatcher",
    "RelayError",
    "RelayReport",
    "RelayState",
    "RelayStrategy",
]
