"""
Relay submission engine.

Chunk writes are paid by a sponsor account through the relay backend: balance
check and funding, session authentication, batching, retry with backoff and
confirmation waiting.
"""
