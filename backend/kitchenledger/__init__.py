"""Kitchen Ledger — restaurant inventory ledger and cost-accounting engine."""

__version__ = "0.1.0"
