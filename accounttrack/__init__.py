"""
AccountTrack

Maker-checker approval service for bank accounts: account creation and edits,
and high-value transactions, are held for a reviewer's decision before they
take effect.
"""

__version__ = "1.0.0"
