"""Q-Score team points ledger and leaderboard service."""
