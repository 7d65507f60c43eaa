"""UK Open Banking TPP API simulator for the SaltEdge Priora sandbox."""

__version__ = "1.0.0"
