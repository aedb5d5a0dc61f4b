import glob
import logging
import os.path
from dataclasses import dataclass

logger = logging.getLogger(__name__)

TRIM_GALORE_TOOL_NAME = "trim_galore"
TRIM_GALORE_EXECUTABLE = "trim_galore"

# trim_galore needs these at run time, though only trim_galore itself is invoked directly
WORKER_REQUIREMENTS = ["trim_galore", "cutadapt", "fastqc", "gzip"]


@dataclass
class TrimGaloreLayout:
    """Where trim_galore output and logs go for a single sample."""

    sample_dir: str

    @property
    def log_dir(self) -> str:
        return os.path.join(self.sample_dir, "logs")

    @property
    def combined_log_path(self) -> str:
        return os.path.join(self.log_dir, "trim_galore.combined.log")

    @property
    def stdout_log_path(self) -> str:
        return os.path.join(self.log_dir, "trim_galore.stdout.log")

    @property
    def stderr_log_path(self) -> str:
        return os.path.join(self.log_dir, "trim_galore.stderr.log")

    def ensure_dirs_exist(self):
        os.makedirs(self.log_dir, exist_ok=True)


def sample_layout(out_dir: str, group: str, replicate: str) -> TrimGaloreLayout:
    return TrimGaloreLayout(
        sample_dir=os.path.join(out_dir, group, "rep%s" % replicate)
    )


def trim_galore_args(
    fastq_1: str,
    fastq_2: str,
    out_dir: str,
    cores: int,
    extra_args: list[str] = [],
) -> list[str]:
    """Paired trimming with FastQC on the results and gzipped output."""
    return (
        [
            TRIM_GALORE_EXECUTABLE,
            "--fastqc",
            "--cores",
            str(cores),
            "--paired",
            "--gzip",
            "--output_dir",
            out_dir,
        ]
        + extra_args
        + [
            fastq_1,
            fastq_2,
        ]
    )


def trimmed_pairs(sample_dir: str) -> tuple[list[str], list[str]]:
    """Return the validated mate 1 and mate 2 files which trim_galore wrote to `sample_dir`."""
    return (
        sorted(glob.glob(os.path.join(glob.escape(sample_dir), "*_val_1*.fq.gz"))),
        sorted(glob.glob(os.path.join(glob.escape(sample_dir), "*_val_2*.fq.gz"))),
    )


def has_trimmed_pairs(sample_dir: str) -> bool:
    val_1, val_2 = trimmed_pairs(sample_dir)
    logger.debug("trimmed files in %s: %s %s" % (sample_dir, val_1, val_2))
    return bool(val_1) and bool(val_2)
