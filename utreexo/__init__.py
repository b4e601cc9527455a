"""Forest arithmetic, hashing and undo data for a Bitcoin UTXO accumulator, with bridge node file formats."""

__version__ = "0.1.0"
__all__ = ["accumulator", "bridgenode"]