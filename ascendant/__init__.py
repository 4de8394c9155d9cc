"""
Ascendant: gamified goal tracking progression engine.

Users complete quests bundled into time-boxed missions, earning XP, coins
and stat growth, with streaks, inactivity penalties, adaptive quest
difficulty and rank ascension.
"""

__version__ = "1.0.0"
