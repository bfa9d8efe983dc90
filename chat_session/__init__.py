"""
Conversational streaming session for voice_chat_demo.

Sends user text to a chat-completion backend, renders the streamed reply as it
arrives, then plays a synthesized voice rendition of the completed reply.

Guarantees:
- At most one live request/response exchange per session
- The user can cancel at any point; late data from a cancelled exchange is dropped
- Transcript logging is best-effort and never blocks the exchange
"""
