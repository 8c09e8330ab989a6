"""LodgePortal - membership management API for a lodge district."""
__version__ = "1.0.0"
