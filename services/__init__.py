"""
Services Package

The cache engine around the in-memory store:
    - resampler: stride decimation of provider series
    - bootstrap: one-shot ordered population of the cache
    - refresh_scheduler: recurring current-value refresh and rolling windows
    - query_service: read-only accessors used by the HTTP layer
"""
