import gzip as gzip_module
import logging
import zlib

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1 << 20


class GzipIntegrityError(Exception):
    def __init__(self, path: str, cause: Exception):
        self.path = path
        self.cause = cause
        super().__init__(str(self))

    def __str__(self) -> str:
        return f"gzip: {self.path}: {type(self.cause).__name__} {str(self.cause)}"


def check_gzip_integrity(path: str):
    """Decompress the whole of `path`, discarding the content, failing on any truncation or corruption."""
    try:
        with gzip_module.open(path, "rb") as gz_f:
            while gz_f.read(_CHUNK_SIZE):
                pass
    except (OSError, EOFError, zlib.error) as e:
        raise GzipIntegrityError(path, e)


def is_gzip_intact(path: str) -> bool:
    try:
        check_gzip_integrity(path)
        return True
    except GzipIntegrityError:
        return False


def count_fastq_reads(path: str) -> int:
    """
    Count reads in a gzipped fastq file as the number of sequence lines, i.e. those at
    line number 2 modulo 4.  An unreadable file counts as zero reads.
    """
    n_lines = 0
    try:
        with gzip_module.open(path, "rb") as gz_f:
            for _ in gz_f:
                n_lines += 1
    except (OSError, EOFError, zlib.error) as e:
        logger.debug(f"failed to count reads in {path}: {e}")
        return 0
    return (n_lines + 2) // 4
