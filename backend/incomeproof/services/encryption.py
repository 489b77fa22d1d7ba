"""
Witness Encryption

AES-256-GCM with a key derived by PBKDF2-HMAC-SHA256 from stable owner
identity attributes. The same owner re-derives the same key on any device
without a server round-trip; no key material is ever persisted.

Scheme v1 (must stay decryptable; bump SCHEME_VERSION if anything changes):
- salt: 16 random bytes per write, base64
- nonce (iv): 12 random bytes per write, base64
- ciphertext: AES-GCM output including the 16-byte tag, base64
- KDF: PBKDF2-HMAC-SHA256, iterations stored with the record
"""
import base64
import os
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..errors import TamperedCiphertextError

SCHEME_VERSION = 1
DEFAULT_ITERATIONS = 100_000
SALT_BYTES = 16
NONCE_BYTES = 12
KEY_BYTES = 32
KEY_CONTEXT = "income-proof-witness-key"


@dataclass(frozen=True)
class OwnerIdentity:
    """Stable identity attributes the encryption key is derived from."""
    user_id: str
    email: str


@dataclass(frozen=True)
class EncryptedPayload:
    ciphertext: str
    iv: str
    salt: str


def _b64e(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _b64d(data: str) -> bytes:
    return base64.b64decode(data.encode("ascii"), validate=True)


def derive_owner_secret(owner: OwnerIdentity) -> str:
    """Deterministic per-owner secret fed to the KDF."""
    return f"{owner.user_id}:{owner.email.strip().lower()}:{KEY_CONTEXT}"


def derive_key(secret: str, salt: bytes, iterations: int = DEFAULT_ITERATIONS) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_BYTES,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(secret.encode("utf-8"))


def encrypt_payload(plaintext: str, secret: str, iterations: int = DEFAULT_ITERATIONS) -> EncryptedPayload:
    """Encrypt with a fresh salt and nonce."""
    salt = os.urandom(SALT_BYTES)
    nonce = os.urandom(NONCE_BYTES)
    key = derive_key(secret, salt, iterations)
    ciphertext = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)
    return EncryptedPayload(ciphertext=_b64e(ciphertext), iv=_b64e(nonce), salt=_b64e(salt))


def decrypt_payload(payload: EncryptedPayload, secret: str, iterations: int = DEFAULT_ITERATIONS) -> str:
    """
    Decrypt and authenticate.

    Raises TamperedCiphertextError on a tag mismatch, a wrong key or a
    malformed encoding; garbage plaintext is never returned.
    """
    try:
        salt = _b64d(payload.salt)
        nonce = _b64d(payload.iv)
        ciphertext = _b64d(payload.ciphertext)
    except (ValueError, UnicodeEncodeError):
        raise TamperedCiphertextError("Encrypted witness has an invalid encoding")

    key = derive_key(secret, salt, iterations)
    try:
        plaintext = AESGCM(key).decrypt(nonce, ciphertext, None)
    except (InvalidTag, ValueError):
        raise TamperedCiphertextError("Encrypted witness failed authentication")
    return plaintext.decode("utf-8")
