"""
K10 analysis package.

Exploratory cluster analysis of responses to the Kessler Psychological
Distress Scale: loading, description, k-means, PCA and reporting.
"""

__version__ = '0.1.0'

from k10analysis.pipeline import AnalysisPipeline
from k10analysis.components.config import Config, ConfigManager
