"""Collaborators the controllers depend on: rounds, leaderboard, AI duel backend."""
