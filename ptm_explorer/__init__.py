"""Browse, consolidate and export protein post-translational modification sites."""

__version__ = "0.1.0"
