from gemach.conversation.engine import ConversationEngine
from gemach.conversation.extraction import (
    ExtractionOracle,
    KeywordExtractor,
    OpenAIExtractor,
    extract_with_fallback,
)
from gemach.conversation.state_machine import (
    InvalidTransitionError,
    SessionStateMachine,
    SessionTrigger,
)

__all__ = [
    "ConversationEngine",
    "ExtractionOracle",
    "KeywordExtractor",
    "OpenAIExtractor",
    "extract_with_fallback",
    "SessionStateMachine",
    "SessionTrigger",
    "InvalidTransitionError",
]
