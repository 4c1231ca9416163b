from .chat import ChatOrchestrator
from .repository import AgentRepository, InMemoryAgentRepository, JsonFileAgentRepository
from .trainer import TrainingAggregator
from .validation import ValidationError

__all__ = [
    'AgentRepository',
    'InMemoryAgentRepository',
    'JsonFileAgentRepository',
    'TrainingAggregator',
    'ChatOrchestrator',
    'ValidationError',
]
