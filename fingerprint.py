import hashlib


def fingerprint(data: bytes) -> str:
    """Hex SHA-256 of the raw bytes; the key for cache entries and stored images."""
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise TypeError(f"fingerprint() expects bytes, got {type(data).__name__}")
    return hashlib.sha256(data).hexdigest()
