# Stub terminator; matched case-insensitively by the offset locator
STUB_TERMINATOR = b"__halt_compiler(); ?>"

# Footer marker of a signed archive
SIGNATURE_MAGIC = b"GBMB"

# Compression flags (global and per entry)
COMPRESSION_GZ = 0x1000
COMPRESSION_BZ2 = 0x2000
COMPRESSION_MASK = 0x3000

# Manifest field offsets relative to the manifest start
MANIFEST_SIZE_OFFSET = 0
ENTRY_COUNT_OFFSET = 4
API_VERSION_OFFSET = 8
GLOBAL_FLAGS_OFFSET = 10
ALIAS_SIZE_OFFSET = 14
ALIAS_OFFSET = 18

# Signature algorithm flags
SIG_MD5 = 0x01
SIG_SHA1 = 0x02
SIG_SHA256 = 0x03
SIG_SHA512 = 0x04
SIG_OPENSSL = 0x10

HASH_CHUNK_SIZE = 1_048_576  # 1 MiB
