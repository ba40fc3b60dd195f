"""
Conversational layer.

- types: shared data structures (QueryIntent, QueryResults, ConversationEntry, ...)
- intent_parser: parse natural-language questions into intents
- context: snapshot application state into a QueryContext
- state: bounded conversation history and suggestions
- orchestrator: main entry point used by the host application
"""
