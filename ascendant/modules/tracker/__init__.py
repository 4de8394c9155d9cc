"""QuestTracker: daily completion state machine and tracker lifecycle."""

from ascendant.modules.tracker.repository import TrackerRepository
from ascendant.modules.tracker.service import QuestTrackerService

__all__ = ["QuestTrackerService", "TrackerRepository"]
