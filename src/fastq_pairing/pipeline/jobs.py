import logging
from typing import Optional

from fastq_pairing.seq.sample_sheet import SampleRow, read_sample_sheet

logger = logging.getLogger(__name__)

DEFAULT_GROUP_PREFIX = "manual"


class JobListError(Exception):
    def __init__(self, msg: str):
        super().__init__(msg)


def jobs_from_pairs(
    pairs: list[tuple[str, str]], group_prefix: str = DEFAULT_GROUP_PREFIX
) -> list[SampleRow]:
    """One job per manually specified pair, all in the same group, with replicates numbered from 1."""
    return [
        SampleRow(group=group_prefix, replicate=str(i), fastq_1=r1, fastq_2=r2)
        for i, (r1, r2) in enumerate(pairs, start=1)
    ]


def build_jobs(
    sample_sheet_path: Optional[str],
    pairs: list[tuple[str, str]],
    group_prefix: str = DEFAULT_GROUP_PREFIX,
) -> list[SampleRow]:
    """Build the job list from the sample sheet if any, otherwise from the manual pairs."""
    if sample_sheet_path:
        jobs = read_sample_sheet(sample_sheet_path)
    elif pairs:
        jobs = jobs_from_pairs(pairs, group_prefix)
    else:
        raise JobListError("Provide -i samplesheet.csv or one/more --pair")

    if not jobs:
        raise JobListError("No jobs parsed.")
    logger.debug("parsed %d jobs" % len(jobs))
    return jobs
