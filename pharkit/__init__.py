"""
pharkit — read and verify PHP archive (.phar) files without PHP.

Features:

- Locates the manifest behind an arbitrary executable stub.
- Decodes the binary manifest: alias, API version, global flags, metadata
  and the list of file and directory entries.
- Decompresses entry payloads (bzip2 or raw deflate) and extracts archives
  to a directory.
- Verifies trailing signatures: MD5, SHA-1, SHA-256, SHA-512 and
  OpenSSL public-key signatures (via PyCryptodomex).

Metadata blobs are serialized PHP values; they are returned as raw bytes
unless a deserializer is supplied.
"""

__version__ = "0.1"

__all__ = [
    "constants",
    "errors",
    "fileio",
    "locator",
    "manifest",
    "extract",
    "signature",
    "reader",
]

# Importable programmatic API is available via pharkit.reader.ArchiveReader and
# the CLI functions in pharkit.cli (cmd_list/cmd_extract/cmd_verify).
