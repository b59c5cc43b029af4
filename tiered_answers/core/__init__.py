"""
Core modules for tiered answers.

This package contains the answer pipeline and its components: the daily
metric snapshot, local answers, tier routing, budget tracking, context
compression and the response cache.
"""
