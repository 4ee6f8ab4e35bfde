"""
Cross-DEX price pipeline: sources, aggregation, scanning, guarded execution.
"""
