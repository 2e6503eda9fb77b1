"""Pipelines for resume import, work-history matching, skills, achievements and tailoring.

Each step is callable on its own from request handlers and tests.
"""
