"""
Wallet protocol and the Ed25519 keypair wallet.
"""

from .signer import KeypairSigner, SignAuthEntryResult, WalletSigner, verify_ed25519  # noqa: F401

__all__ = ["KeypairSigner", "SignAuthEntryResult", "WalletSigner", "verify_ed25519"]
