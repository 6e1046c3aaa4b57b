"""
CivicPulse 情感与威胁评估子系统
"""

__version__ = "0.1.0"
