"""Public-key signature checks backed by PyCryptodomex.

Archives signed through OpenSSL carry a raw signature made with the key's
default digest, SHA-1. RSA keys use PKCS#1 v1.5; DSA and EC keys use
DSS with DER-encoded signatures, as OpenSSL emits them. Verification uses the
RFC 6979 mode because the FIPS 186-3 mode refuses SHA-1 for EC keys.
"""

from __future__ import annotations

from .errors import CodecUnavailable, VerifierError

try:  # pragma: no cover - optional dependency at runtime
    from Cryptodome.Hash import SHA1  # type: ignore
    from Cryptodome.PublicKey import DSA, ECC, RSA  # type: ignore
    from Cryptodome.Signature import DSS, pkcs1_15  # type: ignore
    _HAS_CRYPTODOME = True
except ImportError:  # pragma: no cover - fallback
    SHA1 = DSA = ECC = RSA = DSS = pkcs1_15 = None  # type: ignore
    _HAS_CRYPTODOME = False


def _require_backend() -> None:
    if not _HAS_CRYPTODOME:
        raise CodecUnavailable("PyCryptodomex is required for OpenSSL signature verification", name="OpenSSL")


def import_public_key(material: bytes):
    """Parse PEM or DER public key material into a PyCryptodomex key object."""
    _require_backend()
    for kind in (RSA, ECC, DSA):
        try:
            return kind.import_key(material)
        except (ValueError, IndexError, TypeError):
            continue
    raise VerifierError("Unable to load the public key for signature verification")


def verify(data: bytes, signature: bytes, key_material: bytes) -> bool:
    """Check ``signature`` over ``data``.

    Returns:
        False when the signature does not match; True when it does.

    Raises:
        VerifierError: The key could not be parsed or is of an unsupported type.
    """
    key = import_public_key(key_material)
    digest = SHA1.new(data)
    if isinstance(key, RSA.RsaKey):
        verifier = pkcs1_15.new(key)
    elif isinstance(key, (ECC.EccKey, DSA.DsaKey)):
        try:
            verifier = DSS.new(key, "deterministic-rfc6979", encoding="der")
        except ValueError as exc:
            raise VerifierError(f"Unsupported public key: {exc}") from exc
    else:
        raise VerifierError(f"Unsupported public key type: {type(key).__name__}")
    try:
        verifier.verify(digest, signature)
    except ValueError:
        return False
    return True
