"""EcoScan - points, streaks, levels and achievements for waste scanning"""

__version__ = "1.0.0"
