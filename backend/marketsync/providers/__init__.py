from marketsync.providers.block_explorer import BlockExplorerProvider
from marketsync.providers.jsonodds import JsonOddsProvider
from marketsync.providers.rundown import RundownProvider
from marketsync.providers.sportspage import SportspageProvider

__all__ = ["BlockExplorerProvider", "JsonOddsProvider", "RundownProvider", "SportspageProvider"]
