"""canvaslod - Semantic level-of-detail engine for infinite canvas viewports"""

__version__ = "0.1.0"
