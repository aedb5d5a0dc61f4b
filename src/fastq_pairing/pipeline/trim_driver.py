"""
Trim Galore batch driver.

Local mode runs the samples one after another in this process, showing tool output live.
Slurm mode submits one sbatch job per sample, each running the worker, and returns
without waiting for them.
"""

import argparse
import logging
import os
import os.path
import sys
from typing import Optional

from pydantic import BaseModel, RootModel

from fastq_pairing.cluster import (
    ClusterExecutorError,
    ConfigError,
    SchedulerOptionError,
    SchedulerOptions,
    SubmitSpec,
    init_executor_config,
    parse_scheduler_options,
    submit_job,
)
from fastq_pairing.seq.sample_sheet import SampleRow, SampleSheetError
from fastq_pairing.seq.trim_galore import TRIM_GALORE_TOOL_NAME
from fastq_pairing.util import eprint
from fastq_pairing.util.cli import ArgumentParser
from fastq_pairing.util.log import configure_logging
from fastq_pairing.util.path import expand

from .jobs import DEFAULT_GROUP_PREFIX, JobListError, build_jobs
from .status import Status, StatusLedger, StatusRecord
from .trim_worker import TrimSettings, record_status, run_trim_sample, worker_args

logger = logging.getLogger(__name__)

LOCAL_MODE = "local"
SLURM_MODE = "slurm"

DEFAULT_OUT_DIR = "trim_galore_out"
DEFAULT_CORES = 4

MANIFEST_FILENAME = "slurm_jobs.json"


class SubmittedJob(BaseModel):
    sample_tag: str
    job_id: str
    job_name: str
    fastq_1: str
    fastq_2: str
    stdout_path: str
    stderr_path: str


class SubmittedJobs(RootModel):
    root: list[SubmittedJob] = []


def write_manifest(path: str, jobs: list[SubmittedJob]):
    with open(path, "w") as manifest_f:
        _ = manifest_f.write(SubmittedJobs(jobs).model_dump_json(indent=2))


def run_local(jobs: list[SampleRow], settings: TrimSettings) -> list[StatusRecord]:
    """Trim each sample in turn, samples missing fields being recorded as failures where they occur."""
    records = [run_trim_sample(job, settings, stream=True) for job in jobs]
    logger.info("All local jobs finished.")
    logger.info("Summary: %s  /  %s" % (settings.summary_tsv, settings.summary_log))
    return records


def submit_slurm(
    jobs: list[SampleRow],
    settings: TrimSettings,
    options: SchedulerOptions = SchedulerOptions(),
) -> list[SubmittedJob]:
    """
    Submit one worker job per sample, writing the manifest of whatever was submitted even on failure.

    Samples missing fields are recorded as failures in sheet order and not submitted.
    """
    submitted = []
    ledger = settings.ledger
    manifest_path = os.path.join(settings.out_dir, MANIFEST_FILENAME)
    try:
        for job in jobs:
            tag = job.sample_tag
            if missing := job.missing_fields:
                logger.warning(
                    "%s is missing %s, not submitted" % (tag, ", ".join(missing))
                )
                _ = record_status(
                    ledger,
                    job,
                    Status.FAIL,
                    "missing fields",
                    "[VALIDATION-FAIL] %s :: missing fields" % tag,
                )
                continue
            spec = SubmitSpec(
                tool=TRIM_GALORE_TOOL_NAME,
                name="tg_%s" % tag,
                args=worker_args(job, settings),
                stdout_path=os.path.join(settings.out_dir, "slurm_%s.out" % tag),
                stderr_path=os.path.join(settings.out_dir, "slurm_%s.err" % tag),
                options=options,
            )
            job_id = submit_job(spec)
            logger.info(
                "Submitted %s as JobID %s (logs: %s / %s)"
                % (tag, job_id, spec.stdout_path, spec.stderr_path)
            )
            submitted.append(
                SubmittedJob(
                    sample_tag=tag,
                    job_id=job_id,
                    job_name=spec.name,
                    fastq_1=job.fastq_1,
                    fastq_2=job.fastq_2,
                    stdout_path=spec.stdout_path,
                    stderr_path=spec.stderr_path,
                )
            )
    finally:
        write_manifest(manifest_path, submitted)

    logger.info("All Slurm jobs submitted.")
    logger.info(
        "Summary will accumulate in: %s  /  %s"
        % (settings.summary_tsv, settings.summary_log)
    )
    return submitted


def split_scheduler_args(argv: list[str]) -> tuple[list[str], list[str]]:
    """Split at the first --, after which everything is for the scheduler."""
    if "--" in argv:
        i = argv.index("--")
        return argv[:i], argv[i + 1 :]
    return argv, []


def _get_parser() -> argparse.ArgumentParser:
    parser = ArgumentParser(
        prog="run-trim-galore",
        usage="%(prog)s [OPTIONS] [-- SLURM_OPTS...]",
        description="Run Trim Galore on paired fastq files, locally or as one Slurm job per sample",
        epilog="Local mode runs jobs sequentially and prints the tool output live. "
        "Slurm mode submits one sbatch per sample; tail slurm logs to watch progress. "
        "Worker requirements: trim_galore, cutadapt, fastqc, gzip.",
    )
    _ = parser.add_argument(
        "--local",
        dest="mode",
        action="store_const",
        const=LOCAL_MODE,
        default=LOCAL_MODE,
        help="run locally, streaming live output to screen (default)",
    )
    _ = parser.add_argument(
        "--slurm",
        dest="mode",
        action="store_const",
        const=SLURM_MODE,
        help="submit one sbatch job per sample",
    )
    _ = parser.add_argument("-i", "--input", help="nf-core style samplesheet.csv")
    _ = parser.add_argument(
        "--pair",
        nargs=2,
        action="append",
        default=[],
        metavar=("R1", "R2"),
        help="add a paired fastq, repeatable, used if no samplesheet",
    )
    _ = parser.add_argument(
        "-o", "--outdir", default=DEFAULT_OUT_DIR, help="output dir [%(default)s]"
    )
    _ = parser.add_argument(
        "-c",
        "--cores",
        type=int,
        default=DEFAULT_CORES,
        help="threads per Trim Galore job [%(default)s]",
    )
    _ = parser.add_argument(
        "--group-prefix",
        default=DEFAULT_GROUP_PREFIX,
        help="group for manual pairs [%(default)s]",
    )
    _ = parser.add_argument(
        "--dry-run", action="store_true", help="validate only, no trimming"
    )
    _ = parser.add_argument(
        "-v", "--verbose", action="store_true", help="verbose logging"
    )
    _ = parser.add_argument(
        "--executor-config", default=None, help="tool configuration TOML file"
    )
    return parser


def main(argv: Optional[list[str]] = None):
    if argv is None:
        argv = sys.argv[1:]
    parser = _get_parser()
    if not argv:
        parser.print_help()
        sys.exit(1)
    own_argv, scheduler_argv = split_scheduler_args(argv)
    args = parser.parse_args(own_argv)
    configure_logging(args.verbose)

    try:
        init_executor_config(args.executor_config)
        scheduler_options = parse_scheduler_options(scheduler_argv)
        jobs = build_jobs(
            args.input, [tuple(pair) for pair in args.pair], args.group_prefix
        )

        out_dir = expand(args.outdir)
        os.makedirs(out_dir, exist_ok=True)
        ledger = StatusLedger.in_dir(out_dir)
        ledger.create()
        settings = TrimSettings(
            out_dir=out_dir,
            cores=args.cores,
            summary_tsv=ledger.summary_tsv,
            summary_log=ledger.summary_log,
            dry_run=args.dry_run,
            verbose=args.verbose,
        )

        logger.info(
            "Mode=%s  Jobs=%d  Outdir=%s  Cores=%d  Dry-run=%d"
            % (args.mode, len(jobs), out_dir, args.cores, int(args.dry_run))
        )

        if args.mode == LOCAL_MODE:
            _ = run_local(jobs, settings)
        else:
            _ = submit_slurm(jobs, settings, scheduler_options)
    except (
        ConfigError,
        SchedulerOptionError,
        SampleSheetError,
        JobListError,
        ClusterExecutorError,
        OSError,
    ) as e:
        eprint("ERROR: %s" % e)
        sys.exit(1)


if __name__ == "__main__":
    main()
