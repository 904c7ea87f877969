"""Core domain package for pulse-relay.

Core contains routing, admission control, aggregation, and delivery logic
without any chat-service or storage-specific code, keeping the business logic
portable.
"""
