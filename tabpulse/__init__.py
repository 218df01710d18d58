# ==============================================================================
# tabpulse
# ==============================================================================
"""
Browser tab activity aggregation, engagement tracking and sync pipeline.
"""

__version__ = "0.1.0"
