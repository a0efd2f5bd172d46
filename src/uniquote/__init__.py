"""Unified quote engine for DEX swaps and cross-chain bridges."""

__version__ = "0.1.0"
