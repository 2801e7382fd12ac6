"""Achievement & progression engine for the tax preparation platform"""

__version__ = "1.0.0"
