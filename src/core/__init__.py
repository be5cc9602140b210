"""
Core business logic of the allocation engine.

Submodules:
- allocation: configuration, scoring, ranking, distribution and flow
- errors: typed error kinds
"""
