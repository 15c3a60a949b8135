# wallet/manager.py
"""
Keypair lifecycle for custodial wallets.

Private keys travel as base58 of the 64-byte ed25519 secret (seed followed by
public key), the same format Phantom and solana-keygen export. Nothing in this
module logs or keeps key material; callers decide what to persist.
"""
from dataclasses import dataclass

import base58
from loguru import logger
from solders.keypair import Keypair
from solders.message import to_bytes_versioned
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

SECRET_KEY_LENGTH = 64


class InvalidKeyFormat(ValueError):
    pass


class TransactionSigningError(ValueError):
    pass


@dataclass(frozen=True)
class WalletInfo:
    public_key: str
    private_key: str

    def __repr__(self):
        return f"WalletInfo(public_key={self.public_key!r}, private_key=<hidden>)"


class WalletManager:

    def generate_wallet(self) -> WalletInfo:
        keypair = Keypair()
        wallet = WalletInfo(
            public_key=str(keypair.pubkey()),
            private_key=base58.b58encode(bytes(keypair)).decode(),
        )
        logger.info(f"Generated wallet {wallet.public_key}")
        return wallet

    def derive_keypair(self, private_key: str) -> Keypair:
        if not isinstance(private_key, str) or not private_key.strip():
            raise InvalidKeyFormat("Invalid private key format: empty key")

        try:
            secret = base58.b58decode(private_key.strip())
        except ValueError:
            raise InvalidKeyFormat("Invalid private key format: not base58") from None

        if len(secret) != SECRET_KEY_LENGTH:
            raise InvalidKeyFormat(
                f"Invalid private key format: expected {SECRET_KEY_LENGTH} bytes, got {len(secret)}"
            )

        keypair = Keypair.from_seed(secret[:32])
        if bytes(keypair.pubkey()) != secret[32:]:
            raise InvalidKeyFormat("Invalid private key format: public key does not match secret")
        return keypair

    def public_key_of(self, private_key: str) -> str:
        return str(self.derive_keypair(private_key).pubkey())

    def sign(self, transaction_bytes: bytes, keypair: Keypair) -> bytes:
        """Sign a serialized (legacy or v0) transaction, keeping other signatures."""
        try:
            transaction = VersionedTransaction.from_bytes(transaction_bytes)
        except Exception as e:
            raise TransactionSigningError(f"Malformed transaction: {e}") from None

        message = transaction.message
        required = message.header.num_required_signatures
        signers = list(message.account_keys[:required])
        if keypair.pubkey() not in signers:
            raise TransactionSigningError(
                f"Wallet {keypair.pubkey()} is not a required signer of this transaction"
            )

        signatures = list(transaction.signatures)
        signatures[signers.index(keypair.pubkey())] = keypair.sign_message(to_bytes_versioned(message))
        return bytes(VersionedTransaction.populate(message, signatures))

    @staticmethod
    def is_valid_public_key(address: str) -> bool:
        try:
            Pubkey.from_string(address)
            return True
        except Exception:
            return False
