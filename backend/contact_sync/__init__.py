"""Contact tagging and segmentation for creator stores."""

__version__ = "1.0.0"
