"""Natural-language query engine over classified business and technology moments."""

from moment_query.config import APP_VERSION as __version__
from moment_query.conversation.context import QueryContextBuilder
from moment_query.conversation.intent_parser import QueryParser
from moment_query.conversation.orchestrator import QueryOrchestrator
from moment_query.conversation.state import ConversationHistory
from moment_query.conversation.types import ConversationEntry, QueryContext
from moment_query.core.analytics import AnalysisThresholds
from moment_query.core.data_loader import load_moments, moment_from_record
from moment_query.core.models import Moment, MomentValidationError
from moment_query.core.query_engine import QueryEngineError, QueryExecutor
from moment_query.core.types import QueryIntent, QueryResults

__all__ = [
    "__version__",
    "AnalysisThresholds",
    "ConversationEntry",
    "ConversationHistory",
    "Moment",
    "MomentValidationError",
    "QueryContext",
    "QueryContextBuilder",
    "QueryEngineError",
    "QueryExecutor",
    "QueryIntent",
    "QueryOrchestrator",
    "QueryParser",
    "QueryResults",
    "load_moments",
    "moment_from_record",
]
