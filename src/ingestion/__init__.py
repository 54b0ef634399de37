"""
Ingestion Layer for the event discovery pipeline.

This package fetches events from external providers, normalizes them, gates
them on quality and persists the accepted ones.

Key Components:
- TaskEngine: Bounded-concurrency executor with timeout and retry
- DiscoveryOrchestrator: Runs discovery jobs across locations and sources
- Source adapters: APIAdapter, StaticAdapter behind BaseSourceAdapter
- EventProcessor: Batched normalize -> quality gate -> persist
"""
