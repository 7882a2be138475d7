"""arbiter: multi-agent simulation framework and developer task runner."""

__version__ = "0.3.0"
