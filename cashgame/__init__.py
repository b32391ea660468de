"""Cash-game ledger: buy-ins, cash-outs, settlement and session stages."""

__version__ = "0.1.0"
