"""DES: a ledger of employer registration, soulbound employee credentials,
escrowed employment contracts, arbitration and reviews."""

__version__ = "0.1.0"
