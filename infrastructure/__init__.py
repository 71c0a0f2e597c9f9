"""Infrastructure layer — shared services for tonetrace.

Modules:
    cache       Redis-backed response cache for detect/compose payloads.
    metrics     Prometheus metrics registry.
"""
