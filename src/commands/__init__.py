"""
Command pipeline for the key-value REST adapter.

Requests are parsed into canonical commands, gated by the filter policy,
executed against the store topology and serialized into Upstash-style
response envelopes.
"""
