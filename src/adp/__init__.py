"""adp: share a pool of Android devices between concurrent processes."""

__version__ = "0.1.0"
