"""
Custom exceptions for game finalization with user-friendly error messages.
"""

class FinalizationException(Exception):
    """Base exception for finalization-related errors."""
    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.user_message = user_message or message

class ConfigurationMissingError(FinalizationException):
    """Raised when the achievement catalog is not loaded or a definition is missing in strict mode."""
    def __init__(self, details: str):
        super().__init__(
            f"Achievement configuration missing: {details}",
            "❌ Achievement definitions are not loaded. Please try again once they are configured."
        )

class GameNotFoundError(FinalizationException):
    """Raised when the game to finalize does not exist."""
    def __init__(self, game_id):
        self.game_id = game_id
        super().__init__(
            f"Game {game_id} not found",
            f"❌ Game `{game_id}` was not found!"
        )

class FinalizationInProgressError(FinalizationException):
    """Raised when another invocation already holds the finalization lock for a game."""
    def __init__(self, game_id):
        self.game_id = game_id
        super().__init__(
            f"Finalization already in progress for game {game_id}",
            "⏳ This game is already being finalized. Please wait for it to finish."
        )

class SummaryWriteError(FinalizationException):
    """The achievements summary insert failed; nothing was persisted."""
    def __init__(self, game_id, details: str):
        self.game_id = game_id
        super().__init__(
            f"Failed to write achievements summary for game {game_id}: {details}",
            "❌ Failed to save the game achievements summary. Nothing was saved, you may try again."
        )

class TransactionWriteError(FinalizationException):
    """The merit transaction batch failed after the summary was persisted."""
    def __init__(self, game_id, transaction_count: int, details: str):
        self.game_id = game_id
        self.transaction_count = transaction_count
        super().__init__(
            f"Failed to write {transaction_count} merit transactions for game {game_id}: {details}",
            "⚠️ The achievements summary was saved but merits were not. An administrator must reconcile this game."
        )
