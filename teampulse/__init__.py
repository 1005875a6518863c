"""
TeamPulse
Cross-service team communication analytics
"""
__version__ = "0.1.0"
