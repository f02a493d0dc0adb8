"""
Retention lifecycle engine for elder <-> companion conversation transcripts.
"""

__version__ = "0.1.0"
