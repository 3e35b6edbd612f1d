"""Global configuration with environment variable overrides"""

import os
from typing import Optional


class Config:
    """Global configuration with sensible defaults"""
    
    # Transport
    REQUEST_TIMEOUT: float = 30.0  # seconds
    SESSION_KEY_FIELD: str = "mgckey"
    
    # Bot loop
    ROUND_BACKOFF: float = 3.0  # seconds to pause after a failed round
    PROGRESS_LOG_EVERY: int = 100  # rounds, infinite mode only
    
    # Table layout
    BET_SLOTS: int = 8
    HANDS_PER_DEAL: int = 3
    MAX_HAND_INDEX: int = 5
    INSURANCE_PROMPT_LIMIT: int = 5
    
    # Human-like delay
    DELAY_MAX_ATTEMPTS: int = 100
    DELAY_SIGMA_BOUND: float = 5.0
    
    # Logging
    LOG_LEVEL: str = os.getenv("TABLERUNNER_LOG_LEVEL", "INFO")
    
    @classmethod
    def get_log_level(cls) -> str:
        """Get log level from env or default"""
        return os.getenv("TABLERUNNER_LOG_LEVEL", cls.LOG_LEVEL)
    
    @classmethod
    def get_request_timeout(cls) -> float:
        """Get request timeout from env or default"""
        return float(os.getenv("TABLERUNNER_REQUEST_TIMEOUT", cls.REQUEST_TIMEOUT))
    
    @classmethod
    def get_round_backoff(cls) -> float:
        """Get backoff between failed rounds from env or default"""
        return float(os.getenv("TABLERUNNER_ROUND_BACKOFF", cls.ROUND_BACKOFF))
    
    @classmethod
    def get_strategy_path(cls) -> Optional[str]:
        """Get strategy table path from env (None means built-in table)"""
        return os.getenv("TABLERUNNER_STRATEGY") or None
    
    @classmethod
    def get_state_file(cls) -> Optional[str]:
        """Get CLI state file path from env (None means default location)"""
        return os.getenv("TABLERUNNER_STATE_FILE") or None
