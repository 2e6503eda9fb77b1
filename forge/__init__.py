"""Backend package: DB models, pipelines, APIs.

This package orchestrates resume import, work-history matching, skill
normalization, achievement deduplication and tailored document generation.
"""
