# FILE: cbt_engine/__init__.py
"""
CBT exam attempt engine: reproducible ordering, timed attempts, scoring
"""
__version__ = "1.2.0"
