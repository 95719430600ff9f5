"""git2cvs — replay a git branch's history into a CVS repository."""

__version__ = "0.1.0"
