from leaderboard_sync.core.exceptions import UnsupportedConnectionType
from leaderboard_sync.core.session_store import SessionStore
from leaderboard_sync.services.connectors.base_connector import BaseConnector
from leaderboard_sync.services.connectors.tradesyncer_connector import TradeSyncerConnector
from leaderboard_sync.services.connectors.tradovate_connector import TradovateConnector

_CONNECTORS: dict[str, type[BaseConnector]] = {
    "tradovate": TradovateConnector,
    "tradesyncer": TradeSyncerConnector,
}

# Most firms execute through Tradovate; TradeSyncer sits on top of all of them.
PROP_FIRMS: dict[str, dict] = {
    "topstep": {"display": "Topstep", "connections": ["tradovate", "tradesyncer"]},
    "apex": {"display": "Apex Trader Funding", "connections": ["tradovate", "tradesyncer"]},
    "tradeday": {"display": "TradeDay", "connections": ["tradovate", "tradesyncer"]},
    "take-profit-trader": {"display": "Take Profit Trader", "connections": ["tradovate", "tradesyncer"]},
    "my-funded-futures": {"display": "My Funded Futures", "connections": ["tradovate", "tradesyncer"]},
    "elite-trader-funding": {"display": "Elite Trader Funding", "connections": ["tradovate", "tradesyncer"]},
    "bulenox": {"display": "Bulenox", "connections": ["tradovate", "tradesyncer"]},
    "tradeify": {"display": "Tradeify", "connections": ["tradovate", "tradesyncer"]},
    "fundednext-futures": {"display": "FundedNext Futures", "connections": ["tradovate", "tradesyncer"]},
    "oneup-trader": {"display": "OneUp Trader", "connections": ["tradovate", "tradesyncer"]},
    "blusky-trading": {"display": "BluSky Trading", "connections": ["tradovate", "tradesyncer"]},
    "fxify-futures": {"display": "FXIFY Futures", "connections": ["tradovate", "tradesyncer"]},
    "the-trading-pit": {"display": "The Trading Pit", "connections": ["tradovate", "tradesyncer"]},
    "leeloo-trading": {"display": "Leeloo Trading", "connections": ["tradovate", "tradesyncer"]},
    "other": {"display": "Other", "connections": ["tradovate", "tradesyncer"]},
}


def get_connector(connection_type: str, session_store: SessionStore | None = None) -> BaseConnector:
    connector_class = _CONNECTORS.get(connection_type)
    if not connector_class:
        raise UnsupportedConnectionType(connection_type)
    return connector_class(session_store=session_store)


def get_prop_firm(firm_key: str | None) -> tuple[str, str]:
    """(key, display name) for a firm, falling back to 'other'."""
    if firm_key and firm_key in PROP_FIRMS:
        return firm_key, PROP_FIRMS[firm_key]["display"]
    return "other", PROP_FIRMS["other"]["display"]


def get_supported_firms() -> list[dict]:
    return [
        {"key": key, "display": info["display"], "connections": info["connections"]}
        for key, info in PROP_FIRMS.items()
    ]
