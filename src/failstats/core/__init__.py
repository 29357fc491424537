"""
Core agent components.

This package contains the ban reporting pipeline:
- Log set resolution across rotation conventions
- Incremental scanning and normalization
- Watermark and client identity state
- Batch reporting to the collector
- Metrics collection
"""
