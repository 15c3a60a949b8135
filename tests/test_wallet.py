"""Keypair generation, import and transaction signing."""

import base58
import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import MessageV0, to_bytes_versioned
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction

from wallet import InvalidKeyFormat, TransactionSigningError


def _unsigned_transfer(payer: Pubkey) -> bytes:
    ix = transfer(TransferParams(from_pubkey=payer, to_pubkey=Pubkey.new_unique(), lamports=1_000))
    message = MessageV0.try_compile(payer, [ix], [], Hash.default())
    return bytes(VersionedTransaction.populate(message, [Signature.default()]))


class TestGenerate:
    def test_round_trip(self, wallet_manager, wallet_info):
        keypair = wallet_manager.derive_keypair(wallet_info.private_key)

        assert str(keypair.pubkey()) == wallet_info.public_key
        assert len(base58.b58decode(wallet_info.private_key)) == 64
        assert wallet_manager.public_key_of(wallet_info.private_key) == wallet_info.public_key

    def test_wallets_are_unique(self, wallet_manager):
        assert wallet_manager.generate_wallet().public_key != wallet_manager.generate_wallet().public_key

    def test_repr_hides_private_key(self, wallet_info):
        assert wallet_info.private_key not in repr(wallet_info)


class TestDerive:
    def test_accepts_phantom_style_export(self, wallet_manager):
        keypair = Keypair()
        exported = base58.b58encode(bytes(keypair)).decode()
        assert wallet_manager.derive_keypair(f"  {exported}\n").pubkey() == keypair.pubkey()

    @pytest.mark.parametrize("bad", ["", "   ", "not-base58-0OIl", "abc"])
    def test_rejects_garbage(self, wallet_manager, bad):
        with pytest.raises(InvalidKeyFormat):
            wallet_manager.derive_keypair(bad)

    def test_rejects_wrong_length(self, wallet_manager):
        with pytest.raises(InvalidKeyFormat, match="expected 64 bytes"):
            wallet_manager.derive_keypair(base58.b58encode(b"\x01" * 32).decode())

    def test_rejects_mismatched_public_half(self, wallet_manager):
        secret = bytes(Keypair())[:32] + bytes(Keypair().pubkey())
        with pytest.raises(InvalidKeyFormat, match="does not match"):
            wallet_manager.derive_keypair(base58.b58encode(secret).decode())


class TestSign:
    def test_signs_for_required_signer(self, wallet_manager):
        keypair = Keypair()
        raw = _unsigned_transfer(keypair.pubkey())

        signed = VersionedTransaction.from_bytes(wallet_manager.sign(raw, keypair))

        expected = keypair.sign_message(to_bytes_versioned(signed.message))
        assert signed.signatures[0] == expected
        assert signed.signatures[0] != Signature.default()

    def test_rejects_foreign_transaction(self, wallet_manager):
        raw = _unsigned_transfer(Keypair().pubkey())
        with pytest.raises(TransactionSigningError, match="not a required signer"):
            wallet_manager.sign(raw, Keypair())

    def test_rejects_malformed_bytes(self, wallet_manager):
        with pytest.raises(TransactionSigningError):
            wallet_manager.sign(b"\x00\x01garbage", Keypair())


class TestPublicKey:
    def test_validation(self, wallet_manager, wallet_info):
        assert wallet_manager.is_valid_public_key(wallet_info.public_key)
        assert not wallet_manager.is_valid_public_key("USDC")
        assert not wallet_manager.is_valid_public_key("")
