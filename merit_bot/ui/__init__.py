"""
UI Module - Discord UI Components

Available components:
- EndGameView: One-click game finalization with retry-aware button state
"""
