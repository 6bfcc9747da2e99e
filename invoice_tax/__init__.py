"""Invoice line-item tax computation engine"""

__version__ = "1.0.0"
