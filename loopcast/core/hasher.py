import hashlib

# Read buffer for hashing large video files
HASH_CHUNK_SIZE = 1024 * 1024


def hash_file(file_path: str, chunk_size: int = HASH_CHUNK_SIZE) -> str:
    """
    SHA-256 of the full file contents, streamed in chunks.

    Always reads the bytes currently on disk; OSError propagates if the file
    cannot be read to the end.
    """
    hasher = hashlib.sha256()
    with open(file_path, "rb") as f:
        while chunk := f.read(chunk_size):
            hasher.update(chunk)
    return hasher.hexdigest()
