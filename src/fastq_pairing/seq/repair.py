"""This module wraps BBTools repair.sh to re-synchronise the mates of a paired-end fastq set."""

import logging
import os
import os.path
from dataclasses import dataclass
from typing import Optional

from fastq_pairing.cluster.config import get_tool_config
from fastq_pairing.util.gzip import is_gzip_intact, count_fastq_reads
from fastq_pairing.util.path import common_basename_prefix, cut_at_last
from fastq_pairing.util.subprocess import (
    CalledProcessError,
    ExecutableNotFoundError,
    require_executable,
    run_catching_stderr,
)

logger = logging.getLogger(__name__)

REPAIR_TOOL_NAME = "repair"
REPAIR_EXECUTABLE = "repair.sh"

DEFAULT_SAMPLE_NAME = "sample"


class RepairError(Exception):
    def __init__(self, msg: str, e: Optional[Exception] = None):
        self._msg = msg
        self._e = e

    def __str__(self) -> str:
        if self._e is None:
            return self._msg
        else:
            return "%s: %s" % (self._msg, str(self._e))


@dataclass
class RepairPaths:
    r1: str
    r2: str
    singletons: str
    log: str


@dataclass
class RepairOutput:
    paths: RepairPaths
    r1_reads: int
    r2_reads: int


def derive_sample_name(r1: str, r2: str) -> str:
    """
    Derive a sample name from the common prefix of the fastq basenames, truncated at the mate designator,
    e.g. S1_R1_1.fastq.gz, S1_R1_2.fastq.gz -> S1
    """
    prefix = common_basename_prefix(r1, r2)
    name = cut_at_last(cut_at_last(prefix, "_R1"), "_1").rstrip("_.-")
    if name.endswith("_R"):
        name = name.removesuffix("_R").rstrip("_.-")
    return name or DEFAULT_SAMPLE_NAME


def repair_paths(out_dir: str, sample: str) -> RepairPaths:
    return RepairPaths(
        r1=os.path.join(out_dir, "%s_R1.fixed.fq.gz" % sample),
        r2=os.path.join(out_dir, "%s_R2.fixed.fq.gz" % sample),
        singletons=os.path.join(out_dir, "%s.singletons.fq.gz" % sample),
        log=os.path.join(out_dir, "%s.repair.log" % sample),
    )


def _repair_args(
    in1: str,
    in2: str,
    paths: RepairPaths,
    threads: int,
    jvm_args: list[str] = [],
) -> list[str]:
    # repair.sh matches reads by name, keeping only those present in both mates
    return (
        [REPAIR_EXECUTABLE]
        + jvm_args
        + [
            "in1=%s" % in1,
            "in2=%s" % in2,
            "out1=%s" % paths.r1,
            "out2=%s" % paths.r2,
            "outs=%s" % paths.singletons,
            "overwrite=t",
            "threads=%d" % threads,
        ]
    )


def repair_pair(
    r1: str,
    r2: str,
    out_dir: str = "fixed_fastq",
    sample: Optional[str] = None,
    threads: int = 8,
) -> RepairOutput:
    """Repair a single fastq pair, returning the paths of the repaired mates, which are guaranteed to have equal read counts."""
    for mate, path in [("R1", r1), ("R2", r2)]:
        if not os.path.isfile(path):
            raise RepairError("%s not found: %s" % (mate, path))
    os.makedirs(out_dir, exist_ok=True)

    if not sample:
        sample = derive_sample_name(r1, r2)
    paths = repair_paths(out_dir, sample)

    logger.info("gz integrity check...")
    for mate, path in [("R1", r1), ("R2", r2)]:
        if not is_gzip_intact(path):
            logger.warning(
                "gzip integrity check failed on %s: %s (will salvage pairs)"
                % (mate, path)
            )

    try:
        _ = require_executable(
            REPAIR_EXECUTABLE, hint="install or module load bbmap"
        )
    except ExecutableNotFoundError as e:
        raise RepairError("cannot repair %s" % sample, e)

    java_max_heap = get_tool_config(REPAIR_TOOL_NAME).java_max_heap
    args = _repair_args(
        in1=r1,
        in2=r2,
        paths=paths,
        threads=threads,
        jvm_args=[f"-Xmx{java_max_heap}"] if java_max_heap is not None else [],
    )

    logger.info("Re-pairing %s with BBTools %s" % (sample, REPAIR_EXECUTABLE))
    logger.debug("Running: %s" % " ".join(args))
    with open(paths.log, "w") as log_f:
        try:
            _ = run_catching_stderr(
                args,
                check=True,
                text=True,
                stdout=log_f,
                stderr=log_f,
            )
        except (CalledProcessError, OSError) as e:
            raise RepairError("%s failed for %s" % (REPAIR_EXECUTABLE, sample), e)

    r1_reads = count_fastq_reads(paths.r1)
    r2_reads = count_fastq_reads(paths.r2)
    logger.info("Fixed pair counts: R1=%d, R2=%d" % (r1_reads, r2_reads))
    if r1_reads == 0 or r2_reads == 0 or r1_reads != r2_reads:
        raise RepairError(
            "Post-fix counts still invalid (R1=%d, R2=%d)." % (r1_reads, r2_reads)
        )

    return RepairOutput(paths=paths, r1_reads=r1_reads, r2_reads=r2_reads)
