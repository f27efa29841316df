"""
Pub/Sub bus — Carries reaction events in and TimeBomb requests out.

- The events webhook PUBLISHES raw Slack envelopes to the inbound channel
- The relay SUBSCRIBES, and PUBLISHES deferred deletions to TimeBomb
- Supports Redis PUBLISH/SUBSCRIBE (production) and in-memory asyncio queues (dev)
"""
