"""External next-word predictors."""

from .base import BaseSuggestionPredictor, ConversationMessage, now_millis
from .llm import (
    LLMSuggestionPredictor,
    PredictorConfig,
    PredictorProvider,
    create_predictor,
    parse_reply,
)

__all__ = [
    'BaseSuggestionPredictor',
    'ConversationMessage',
    'now_millis',
    'LLMSuggestionPredictor',
    'PredictorConfig',
    'PredictorProvider',
    'create_predictor',
    'parse_reply',
]
