"""EchoLayer: attention scoring, propagation tracking and reward ledger."""

__version__ = "0.1.0"
