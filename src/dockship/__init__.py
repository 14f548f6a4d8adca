"""dockship: provision a host over SSH and deploy one containerized app behind nginx."""

__version__ = "0.1.0"
