"""
Run Trim Galore on one fastq pair, recording exactly one status row for the sample.

Any failure is recorded rather than raised, so a batch carries on with the next sample.
"""

import argparse
import logging
import os
import os.path
import shutil
import sys
from dataclasses import dataclass
from typing import Optional

from fastq_pairing.cluster.config import (
    ConfigError,
    executor_config,
    get_tool_config,
    init_executor_config,
)
from fastq_pairing.seq.sample_sheet import SampleRow
from fastq_pairing.seq.trim_galore import (
    TRIM_GALORE_TOOL_NAME,
    WORKER_REQUIREMENTS,
    has_trimmed_pairs,
    sample_layout,
    trim_galore_args,
)
from fastq_pairing.util import eprint
from fastq_pairing.util.cli import ArgumentParser
from fastq_pairing.util.gzip import GzipIntegrityError, check_gzip_integrity
from fastq_pairing.util.log import JobLogAdapter, configure_logging
from fastq_pairing.util.path import expand
from fastq_pairing.util.subprocess import run_teeing, run_to_files

from .status import Status, StatusLedger, StatusRecord

logger = logging.getLogger(__name__)

WORKER_MODULE = "fastq_pairing.pipeline.trim_worker"


@dataclass
class TrimSettings:
    """Settings in common for all samples in a batch."""

    out_dir: str
    cores: int
    summary_tsv: str
    summary_log: str
    dry_run: bool = False
    verbose: bool = False

    def __post_init__(self):
        """Allow ~ and environment variables in paths."""
        for name in ["out_dir", "summary_tsv", "summary_log"]:
            setattr(self, name, expand(getattr(self, name)))

    @property
    def ledger(self) -> StatusLedger:
        return StatusLedger(self.summary_tsv, self.summary_log)


def _job_logger() -> JobLogAdapter:
    return JobLogAdapter(logger, {"job_id": os.environ.get("SLURM_JOB_ID", "local")})


def record_status(
    ledger: StatusLedger, row: SampleRow, status: Status, message: str, log_line: str
) -> StatusRecord:
    record = StatusRecord(
        group=row.group,
        replicate=row.replicate,
        fastq_1=row.fastq_1,
        fastq_2=row.fastq_2,
        status=status,
        message=message,
    )
    ledger.record(record, log_line)
    return record


def validation_failure(row: SampleRow, ledger: StatusLedger) -> Optional[str]:
    """Return why the sample is not fit for trimming, or None if it is.  Checks are in order, first failure wins."""
    if row.missing_fields:
        return "missing fields"
    for column in ["fastq_1", "fastq_2"]:
        if not os.path.isfile(getattr(row, column)):
            return "%s not found: %s" % (column, getattr(row, column))
    for column in ["fastq_1", "fastq_2"]:
        if os.path.getsize(getattr(row, column)) == 0:
            return "%s empty: %s" % (column, getattr(row, column))
    for column in ["fastq_1", "fastq_2"]:
        try:
            check_gzip_integrity(getattr(row, column))
        except GzipIntegrityError as e:
            ledger.note(str(e))
            return "gzip integrity failed: %s" % getattr(row, column)
    return None


def run_trim_sample(
    row: SampleRow, settings: TrimSettings, stream: bool = False
) -> StatusRecord:
    """
    Validate and trim a single sample.

    With `stream`, tool output is shown live on stdout as well as saved to the combined log,
    otherwise stdout and stderr are saved to their own log files.
    """
    log = _job_logger()
    ledger = settings.ledger
    tag = row.sample_tag
    layout = sample_layout(settings.out_dir, row.group, row.replicate)

    log.info("Starting %s" % tag)
    log.info("fastq1=%s" % row.fastq_1)
    log.info("fastq2=%s" % row.fastq_2)
    log.info(
        "cores=%d  dry_run=%s  stream=%s"
        % (settings.cores, str(settings.dry_run).lower(), str(stream).lower())
    )

    if (failure := validation_failure(row, ledger)) is not None:
        log.info("Validation failed: %s" % failure)
        return record_status(
            ledger,
            row,
            Status.FAIL,
            failure,
            "[VALIDATION-FAIL] %s :: %s" % (tag, failure),
        )

    layout.ensure_dirs_exist()

    if settings.dry_run:
        log.info("Dry-run: validation OK")
        return record_status(
            ledger,
            row,
            Status.OK,
            "validated_only_dryrun",
            "[OK-DRYRUN] %s :: Validation passed" % tag,
        )

    missing = [tool for tool in WORKER_REQUIREMENTS if shutil.which(tool) is None]
    if missing:
        log.warning("not found in PATH: %s" % " ".join(missing))

    args = trim_galore_args(
        fastq_1=row.fastq_1,
        fastq_2=row.fastq_2,
        out_dir=layout.sample_dir,
        cores=settings.cores,
        extra_args=get_tool_config(TRIM_GALORE_TOOL_NAME).args,
    )
    log.info("Running: %s" % " ".join(args))

    if stream:
        rc = run_teeing(args, layout.combined_log_path)
    else:
        rc = run_to_files(args, layout.stdout_log_path, layout.stderr_log_path)

    if rc != 0:
        log.info("Trim Galore failed with code %d" % rc)
        return record_status(
            ledger,
            row,
            Status.FAIL,
            "trim_galore_exit_%d" % rc,
            "[RUN-FAIL] %s :: Trim Galore exit %d" % (tag, rc),
        )

    if not has_trimmed_pairs(layout.sample_dir):
        log.info("Post-run check failed")
        return record_status(
            ledger,
            row,
            Status.FAIL,
            "missing_trimmed_pairs",
            "[POST-CHECK-FAIL] %s :: Missing trimmed pairs in %s"
            % (tag, layout.sample_dir),
        )

    log.info("Completed OK")
    return record_status(
        ledger, row, Status.OK, "trim_complete", "[OK] %s :: Completed" % tag
    )


def worker_args(row: SampleRow, settings: TrimSettings) -> list[str]:
    """Command line arguments for running the worker for `row` as a separate process."""
    args = [
        sys.executable,
        "-m",
        WORKER_MODULE,
        "--group",
        row.group,
        "--replicate",
        row.replicate,
        "--fastq-1",
        row.fastq_1,
        "--fastq-2",
        row.fastq_2,
        "--outdir",
        settings.out_dir,
        "--cores",
        str(settings.cores),
        "--summary-tsv",
        settings.summary_tsv,
        "--summary-log",
        settings.summary_log,
    ]
    if settings.dry_run:
        args.append("--dry-run")
    if settings.verbose:
        args.append("--verbose")
    if (config_path := executor_config().path) is not None:
        args += ["--executor-config", config_path]
    return args


def _get_options(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = ArgumentParser(
        description="Run ONE Trim Galore paired job, as submitted by run-trim-galore --slurm",
    )
    _ = parser.add_argument("--group", default="", help="sample group")
    _ = parser.add_argument("--replicate", default="", help="sample replicate")
    _ = parser.add_argument("--fastq-1", dest="fastq_1", default="", help="mate 1")
    _ = parser.add_argument("--fastq-2", dest="fastq_2", default="", help="mate 2")
    _ = parser.add_argument("--outdir", required=True, help="batch output dir")
    _ = parser.add_argument("--cores", type=int, required=True, help="Trim Galore cores")
    _ = parser.add_argument("--summary-tsv", required=True, help="results table")
    _ = parser.add_argument("--summary-log", required=True, help="results log")
    _ = parser.add_argument(
        "--dry-run", action="store_true", help="validate only, no trimming"
    )
    _ = parser.add_argument("-v", "--verbose", action="store_true")
    _ = parser.add_argument(
        "--stream",
        action="store_true",
        help="show tool output live rather than in separate log files",
    )
    _ = parser.add_argument(
        "--executor-config", default=None, help="tool configuration TOML file"
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None):
    args = _get_options(argv)
    configure_logging(args.verbose)
    try:
        init_executor_config(args.executor_config)
    except ConfigError as e:
        eprint("ERROR: %s" % e)
        sys.exit(1)

    row = SampleRow(
        group=args.group,
        replicate=args.replicate,
        fastq_1=args.fastq_1,
        fastq_2=args.fastq_2,
    )
    settings = TrimSettings(
        out_dir=args.outdir,
        cores=args.cores,
        summary_tsv=args.summary_tsv,
        summary_log=args.summary_log,
        dry_run=args.dry_run,
        verbose=args.verbose,
    )
    _ = run_trim_sample(row, settings, stream=args.stream)


if __name__ == "__main__":
    main()
