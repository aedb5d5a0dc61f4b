# re-exports for fastq_pairing.util

from . import cli, gzip, log, path, subprocess
from .error import eprint

__all__ = [
    # packages
    "cli",
    "gzip",
    "log",
    "path",
    "subprocess",
    # symbols
    "eprint",
]
