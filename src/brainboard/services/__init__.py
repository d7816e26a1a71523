"""Insight pipeline services: providers, cache, clustering, generation, orchestration."""
