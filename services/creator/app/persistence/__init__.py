"""Persistence layer: store contract, implementations and the draft mapper."""

from .mapper import PersistenceMapper, SaveReport
from .postgres import PostgresQuestStore
from .store import InMemoryQuestStore, QuestStore

__all__ = [
    "InMemoryQuestStore",
    "PersistenceMapper",
    "PostgresQuestStore",
    "QuestStore",
    "SaveReport",
]
