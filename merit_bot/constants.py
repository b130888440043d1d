"""
Constants for the merit finalization engine.

Reward fallbacks, ledger transaction types and UI values live here so that
no module carries its own copy of a magic number.
"""

class MeritConstants:
    """Constants related to merit rewards."""
    
    # Used when a catalog definition is missing and strict mode is off.
    # Keyed by the achievement definition name.
    FALLBACK_REWARDS = {
        "Overall Game MVP": 500,
        "Podium Finisher (2nd Place)": 200,
        "Podium Finisher (3rd Place)": 150,
        "KPI Achiever": 250,
        "Winning Team Member": 100,
        "Team Leader MVP": 300,
    }
    
    # Number of ranked players recorded as podium finishers
    PODIUM_SIZE = 3
    
    UNKNOWN_PLAYER_NAME = "Unknown Player"
    UNKNOWN_TEAM_NAME = "Unknown Team"

class TransactionTypes:
    """Values stored in MeritTransaction.transaction_type."""
    
    ACHIEVEMENT_REWARD = "achievement_reward"
    KPI_BONUS = "kpi_bonus"
    TEAM_WIN_REWARD = "team_win_reward"
    TEAM_MVP_REWARD = "team_mvp_reward"

class LockConstants:
    """Constants for the per-game finalization lock."""
    
    REDIS_KEY_PREFIX = "game_finalization_lock"

class UIConstants:
    """Constants for Discord UI elements."""
    
    # Embed colors
    DEFAULT_EMBED_COLOR = 0x3498db  # Blue
    GOLD_RANK_COLOR = 0xffd700     # Gold for MVP
    ERROR_COLOR = 0xe74c3c         # Red for errors
    WARNING_COLOR = 0xf39c12       # Orange for partial failure
    SUCCESS_COLOR = 0x2ecc71       # Green for success
    
    TROPHY_EMOJI = "🏆"
    MEDAL_EMOJIS = {1: "🥇", 2: "🥈", 3: "🥉"}
    MERIT_EMOJI = "🎖️"
    
    # End Game view stays interactive for 15 minutes
    END_GAME_VIEW_TIMEOUT = 900
