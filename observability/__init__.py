"""
Diagnostic event envelope and in-memory event store shared by all chat_session components.
"""
