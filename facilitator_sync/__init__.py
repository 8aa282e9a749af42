"""
facilitator_sync: windowed Starknet Transfer-event ingestion.

Fetches Transfer events for a token contract over a time window, resolves
block timestamps and transaction submitters with bounded, rate-limit-aware
concurrency, decodes both on-chain encodings of the event, keeps transfers
sent by the configured facilitator, and hands them to the persistence layer.
"""

__version__ = "0.1.0"
