"""
Pre-sale wallet import.

Decrypts wallets issued during the 2014 Ethereum crowd-sale:

    {"encseed": "<hex iv || ciphertext>", "ethaddr": "<40 hex>",
     "email": "...", "btcaddr": "..."}

The seed is AES-128-CBC encrypted under PBKDF2-HMAC-SHA256(passphrase,
salt=passphrase, 2000 rounds, 16 bytes). The private key is keccak256(seed).
"""

import json

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from web3 import Web3

from .crypto import private_key_to_address, wipe
from .errors import AuthenticationFailed, MalformedKeyFile


PRESALE_PBKDF2_ROUNDS = 2000
PRESALE_KEY_SIZE = 16
PRESALE_IV_SIZE = 16


def _fields(data: bytes | str) -> tuple[bytes, str]:
    try:
        obj = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedKeyFile("Pre-sale wallet is not valid JSON") from e
    if not isinstance(obj, dict):
        raise MalformedKeyFile("Pre-sale wallet must be a JSON object")

    # Field names are matched case-insensitively, as the issuing tools varied
    lowered = {k.lower(): v for k, v in obj.items()}
    encseed = lowered.get("encseed")
    ethaddr = lowered.get("ethaddr")
    if not isinstance(encseed, str) or not isinstance(ethaddr, str):
        raise MalformedKeyFile("Pre-sale wallet needs 'encseed' and 'ethaddr'")

    try:
        seed_bytes = bytes.fromhex(encseed)
    except ValueError as e:
        raise MalformedKeyFile("Pre-sale 'encseed' is not valid hex") from e
    if len(seed_bytes) < PRESALE_IV_SIZE * 2 or len(seed_bytes) % PRESALE_IV_SIZE:
        raise MalformedKeyFile("Pre-sale 'encseed' has invalid length")
    return seed_bytes, ethaddr.lower().removeprefix("0x")


def decrypt_presale_key(data: bytes | str, passphrase: str) -> bytearray:
    """
    Decrypt a pre-sale wallet and return its private key.

    Raises:
        MalformedKeyFile: Not a pre-sale wallet
        AuthenticationFailed: Wrong passphrase (bad padding or address mismatch)
    """
    seed_bytes, expected_addr = _fields(data)
    iv, ciphertext = seed_bytes[:PRESALE_IV_SIZE], seed_bytes[PRESALE_IV_SIZE:]

    secret = passphrase.encode('utf-8')
    kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=PRESALE_KEY_SIZE,
                     salt=secret, iterations=PRESALE_PBKDF2_ROUNDS)
    derived = kdf.derive(secret)

    decryptor = Cipher(algorithms.AES(derived), modes.CBC(iv)).decryptor()
    padded = bytearray(decryptor.update(ciphertext) + decryptor.finalize())
    try:
        unpadder = padding.PKCS7(128).unpadder()
        seed = bytearray(unpadder.update(bytes(padded)) + unpadder.finalize())
    except ValueError as e:
        raise AuthenticationFailed() from e
    finally:
        wipe(padded)

    key = bytearray(Web3.keccak(bytes(seed)))
    wipe(seed)

    try:
        address = private_key_to_address(key)
    except ValueError as e:
        wipe(key)
        raise AuthenticationFailed() from e
    if address.hex() != expected_addr:
        wipe(key)
        raise AuthenticationFailed()
    return key
