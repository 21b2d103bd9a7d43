"""
Run-level components for the K10 analysis.
"""

from k10analysis.components.config import Config, ConfigManager
