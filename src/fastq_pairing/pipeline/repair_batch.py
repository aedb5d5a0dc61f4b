"""
Repair all fastq pairs in a sample sheet, writing a new sample sheet with the repaired paths.

Output:
  <outdir>/samplesheet.fixed.csv
  <outdir>/repair_summary.tsv and <outdir>/repair_summary.log
  repaired fastqs in <outdir>/fixed_fastq/<group>/rep<replicate>/
"""

import argparse
import logging
import os
import os.path
import sys
from typing import Optional

from fastq_pairing.cluster import ConfigError, init_executor_config
from fastq_pairing.seq.repair import RepairError, repair_pair
from fastq_pairing.seq.sample_sheet import (
    SampleRow,
    SampleSheetError,
    SampleSheetWriter,
    read_sample_sheet,
)
from fastq_pairing.util import eprint
from fastq_pairing.util.cli import ArgumentParser
from fastq_pairing.util.log import configure_logging

from .status import Status, StatusLedger, StatusRecord

logger = logging.getLogger(__name__)

DEFAULT_OUT_DIR = "fixed_fastq_batch"
DEFAULT_THREADS = 8

FIXED_SAMPLE_SHEET_FILENAME = "samplesheet.fixed.csv"
SUMMARY_STEM = "repair_summary"


def _status_record(row: SampleRow, status: Status, message: str) -> StatusRecord:
    return StatusRecord(
        group=row.group,
        replicate=row.replicate,
        fastq_1=row.fastq_1,
        fastq_2=row.fastq_2,
        status=status,
        message=message,
    )


def repair_row(
    row: SampleRow, out_dir: str, threads: int, ledger: StatusLedger
) -> Optional[SampleRow]:
    """Repair the pair for one row, returning the row with repaired paths, or None on failure, which is recorded."""
    tag = row.sample_tag
    if missing := row.missing_fields:
        message = "missing fields: %s" % ", ".join(missing)
        logger.warning("Skipping %s, %s" % (tag, message))
        ledger.record(
            _status_record(row, Status.FAIL, message),
            "[SKIP] %s :: %s" % (tag, message),
        )
        return None

    logger.info("Fixing %s rep%s..." % (row.group, row.replicate))
    try:
        output = repair_pair(
            r1=row.fastq_1,
            r2=row.fastq_2,
            out_dir=os.path.join(out_dir, "fixed_fastq", row.group, "rep%s" % row.replicate),
            sample=tag,
            threads=threads,
        )
    except (RepairError, OSError) as e:
        logger.error("Failed to fix %s: %s" % (tag, e))
        ledger.record(
            _status_record(row, Status.FAIL, str(e).splitlines()[0]),
            "[REPAIR-FAIL] %s :: %s" % (tag, e),
        )
        return None

    fixed = row.with_fastqs(output.paths.r1, output.paths.r2)
    ledger.record(
        _status_record(
            fixed, Status.OK, "repaired %d read pairs" % output.r1_reads
        ),
        "[OK] %s :: %d read pairs" % (tag, output.r1_reads),
    )
    return fixed


def repair_sample_sheet(
    sample_sheet_path: str,
    out_dir: str = DEFAULT_OUT_DIR,
    threads: int = DEFAULT_THREADS,
) -> tuple[str, list[StatusRecord]]:
    """
    Repair every sample in the sample sheet, carrying on past failures.

    Return the path of the fixed sample sheet, which contains only the successfully repaired samples,
    and the status of every sample.
    """
    rows = read_sample_sheet(sample_sheet_path)
    os.makedirs(out_dir, exist_ok=True)

    ledger = StatusLedger.in_dir(out_dir, SUMMARY_STEM)
    ledger.create()
    writer = SampleSheetWriter(os.path.join(out_dir, FIXED_SAMPLE_SHEET_FILENAME))

    for row in rows:
        if (fixed := repair_row(row, out_dir, threads, ledger)) is not None:
            writer.append(fixed)

    logger.info("Wrote fixed samplesheet: %s" % writer.path)
    return writer.path, ledger.read()


def _get_options(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = ArgumentParser(
        prog="fix-samplesheet-fastq",
        description="Fix all fastq pairs in an nf-core samplesheet and write a new samplesheet with updated paths",
    )
    _ = parser.add_argument(
        "-i", "--input", required=True, help="nf-core style samplesheet.csv"
    )
    _ = parser.add_argument(
        "-o", "--outdir", default=DEFAULT_OUT_DIR, help="output dir [%(default)s]"
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
        fixed_path, records = repair_sample_sheet(
            args.input, out_dir=args.outdir, threads=args.threads
        )
    except (ConfigError, SampleSheetError, OSError) as e:
        eprint("ERROR: %s" % e)
        sys.exit(1)

    print(fixed_path)
    failed = [record for record in records if record.status == Status.FAIL]
    if failed:
        eprint("ERROR: %d of %d samples failed to repair" % (len(failed), len(records)))
        sys.exit(1)


if __name__ == "__main__":
    main()
