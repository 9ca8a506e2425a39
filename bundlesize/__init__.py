"""Bundle-size history tracking: baseline lookup, comparison and append-only datasets."""

__version__ = "0.4.0"
