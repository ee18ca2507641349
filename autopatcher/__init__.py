"""Match local ROMs to remote IPS patches by content hash and apply them."""

__version__ = "0.1.0"
