"""AlumniFinder - alumni directory lookup and contact relay."""

__version__ = "0.1.0"
