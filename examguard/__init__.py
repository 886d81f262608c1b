"""
examguard - Attention and anomaly event engine for proctored sessions
"""

__version__ = "1.0.0"
