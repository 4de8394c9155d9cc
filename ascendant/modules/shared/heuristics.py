"""
Keyword heuristics for classifying free-text tasks.

Used for sidequests when no classifier is configured (or it fails), and by
the static content generator to pick a stat for each quest.

Difficulty rules are checked in order and a later match overrides an
earlier one, so the hardest matching tier wins. Stat rules stop at the
first match.
"""

from __future__ import annotations

import re
from typing import Tuple

from ascendant.database.models.enums import SidequestDifficulty, StatName

DIFFICULTY_RULES: Tuple[Tuple[SidequestDifficulty, "re.Pattern[str]"], ...] = (
    (SidequestDifficulty.TRIVIAL, re.compile(r"buy|email|call|wash|clean|list|water plants|trash")),
    (SidequestDifficulty.EASY, re.compile(r"study|homework|organize|write|practice|review")),
    (
        SidequestDifficulty.MEDIUM,
        re.compile(r"workout|research|prepare|design|refactor|declutter|groceries"),
    ),
    (
        SidequestDifficulty.HARD,
        re.compile(r"presentation|thesis|tax|application|deep clean|resume|portfolio"),
    ),
)

STAT_RULES: Tuple[Tuple[StatName, "re.Pattern[str]"], ...] = (
    (StatName.INTELLIGENCE, re.compile(r"study|read|research|email|plan|analyze|review")),
    (StatName.STRENGTH, re.compile(r"run|workout|pushup|gym|train|exercise")),
    (StatName.AGILITY, re.compile(r"clean|organize|declutter|wash")),
    (StatName.ENDURANCE, re.compile(r"walk|grocer|shopping|errand|carry")),
    (StatName.CHARISMA, re.compile(r"call|meet|network|present|interview|email professor|team")),
)

DEFAULT_DIFFICULTY = SidequestDifficulty.EASY
DEFAULT_STAT = StatName.ENDURANCE


def guess_difficulty(text: str) -> SidequestDifficulty:
    """
    >>> guess_difficulty("clean the kitchen and prepare tax forms")
    <SidequestDifficulty.HARD: 'hard'>
    """
    lowered = text.lower()
    difficulty = DEFAULT_DIFFICULTY
    for tier, pattern in DIFFICULTY_RULES:
        if pattern.search(lowered):
            difficulty = tier
    return difficulty


def guess_stat(text: str) -> StatName:
    lowered = text.lower()
    for stat, pattern in STAT_RULES:
        if pattern.search(lowered):
            return stat
    return DEFAULT_STAT


def classify_task(title: str, description: str = "") -> Tuple[SidequestDifficulty, StatName]:
    text = f"{title} {description or ''}"
    return guess_difficulty(text), guess_stat(text)
