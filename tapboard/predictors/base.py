"""Base predictor class."""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List


def now_millis() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class ConversationMessage:
    """One utterance of the conversation fed to a predictor."""
    text: str
    timestamp: int = field(default_factory=now_millis)  # epoch milliseconds
    is_local_user: bool = True


class BaseSuggestionPredictor(ABC):
    """
    Abstract base class for next-word predictors.

    Provides lifecycle management and async context manager support.
    Subclasses implement predict() and optionally override close().
    """

    @abstractmethod
    async def predict(self, history: List[ConversationMessage]) -> List[str]:
        """
        Suggest replies for a conversation.

        Args:
            history: Messages sorted by timestamp, oldest first; the last
                     one is the sentence being built

        Returns:
            Ranked suggestion strings

        Raises:
            PredictionError: If the predictor cannot produce suggestions
        """
        pass

    async def close(self) -> None:
        """Close any open resources (sessions, connections, etc.)."""
        pass

    async def __aenter__(self) -> "BaseSuggestionPredictor":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
