"""Custom exceptions for tablerunner"""


class TableRunnerError(Exception):
    """Base exception for all tablerunner errors"""
    pass


class ConfigurationError(TableRunnerError):
    """Capture, settings or strategy table missing or invalid"""
    pass


class StrategyGapError(TableRunnerError):
    """Strategy table has no entry for a required lookup"""

    def __init__(self, dealer_key: str, hand_signature: str, detail: str = ""):
        self.dealer_key = dealer_key
        self.hand_signature = hand_signature
        message = f"No strategy for hand '{hand_signature}' vs dealer '{dealer_key}'"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class ProtocolDesync(TableRunnerError):
    """Local protocol state disagrees with the server"""
    pass


class GameFrozenError(ProtocolDesync):
    """Server reported the session as frozen"""
    pass


class TransportError(TableRunnerError):
    """Request failed before a usable response arrived"""
    pass


class SessionNotFoundError(TableRunnerError):
    """No bot registered under the given session id"""
    pass
