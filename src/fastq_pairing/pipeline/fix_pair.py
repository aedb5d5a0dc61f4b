"""Repair a single paired-end fastq set, printing the paths of the repaired mates."""

import argparse
import logging
import sys
from typing import Optional

from fastq_pairing.cluster import ConfigError, init_executor_config
from fastq_pairing.seq.repair import RepairError, repair_pair
from fastq_pairing.util import eprint
from fastq_pairing.util.cli import ArgumentParser
from fastq_pairing.util.log import configure_logging

logger = logging.getLogger(__name__)

DEFAULT_OUT_DIR = "fixed_fastq"
DEFAULT_THREADS = 8


def _get_options(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = ArgumentParser(
        prog="fix-fastq-pair",
        description="Fix/synchronize a paired-end fastq set by intersecting read IDs, using BBTools repair.sh",
        epilog="Writes <outdir>/<sample>_R1.fixed.fq.gz, <outdir>/<sample>_R2.fixed.fq.gz and "
        "<outdir>/<sample>.singletons.fq.gz (reads that were orphaned)",
    )
    _ = parser.add_argument("-1", dest="r1", required=True, help="mate 1 fastq")
    _ = parser.add_argument("-2", dest="r2", required=True, help="mate 2 fastq")
    _ = parser.add_argument(
        "-o", "--outdir", default=DEFAULT_OUT_DIR, help="output dir [%(default)s]"
    )
    _ = parser.add_argument(
        "-p",
        "--prefix",
        default=None,
        help="sample name, derived from the fastq filenames if omitted",
    )
    _ = parser.add_argument(
        "-t", "--threads", type=int, default=DEFAULT_THREADS, help="[%(default)s]"
    )
    _ = parser.add_argument("-v", "--verbose", action="store_true")
    _ = parser.add_argument(
        "--executor-config", default=None, help="tool configuration TOML file"
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None):
    args = _get_options(argv)
    configure_logging(args.verbose)
    try:
        init_executor_config(args.executor_config)
        output = repair_pair(
            r1=args.r1,
            r2=args.r2,
            out_dir=args.outdir,
            sample=args.prefix,
            threads=args.threads,
        )
    except (ConfigError, RepairError, OSError) as e:
        eprint("ERROR: %s" % e)
        sys.exit(1)

    print(output.paths.r1)
    print(output.paths.r2)


if __name__ == "__main__":
    main()
