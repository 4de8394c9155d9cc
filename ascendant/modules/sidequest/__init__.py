"""Sidequests: one-off tasks with a fixed reward table."""

from ascendant.modules.sidequest.repository import SidequestRepository
from ascendant.modules.sidequest.service import SidequestService

__all__ = ["SidequestRepository", "SidequestService"]
