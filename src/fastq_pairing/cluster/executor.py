"""This module submits jobs to Slurm through PSI/J, without waiting for them to run."""

import logging
import os
import os.path
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path

from psij import (
    InvalidJobException,
    Job,
    JobAttributes,
    JobExecutor,
    JobSpec,
    SubmitException,
)
from psij.executors.batch.batch_scheduler_executor import BatchSchedulerExecutorConfig

from .config import ConfigError, executor_config, get_tool_config
from .options import SchedulerOptionError, SchedulerOptions

logger = logging.getLogger(__name__)

EXECUTOR_NAME = "slurm"

# PSI/J imposes a ten minute limit when none is given, too short for trimming
DEFAULT_DURATION = timedelta(hours=4)


class ClusterExecutorError(Exception):
    def __init__(
        self,
        message: str,
    ):
        super().__init__(message)


@dataclass(kw_only=True)
class SubmitSpec:
    """The spec for a job to be submitted to the compute cluster, and not waited for."""

    tool: str
    name: str
    args: list[str]
    stdout_path: str
    stderr_path: str
    options: SchedulerOptions = field(default_factory=SchedulerOptions)


def _scheduler_options(spec: SubmitSpec) -> SchedulerOptions:
    """Configured options for the tool, overridden by any in the spec."""
    tool_config = get_tool_config(spec.tool)
    try:
        configured = SchedulerOptions(tool_config.sbatch)
    except SchedulerOptionError as e:
        raise ConfigError(
            message=str(e), path=executor_config().path, tool=spec.tool
        )
    return configured.overlaid(spec.options)


def _create_job_attributes(options: SchedulerOptions, job_name: str) -> JobAttributes:
    custom_attributes = {
        f"{EXECUTOR_NAME}.{key}": value
        for key, value in options.as_dict().items()
        if key != "time"
    } | {f"{EXECUTOR_NAME}.job-name": job_name}
    duration = options.duration or DEFAULT_DURATION
    logger.debug(f"job attributes: duration={duration} {custom_attributes}")
    return JobAttributes(duration=duration, custom_attributes=custom_attributes)


def create_job_spec(spec: SubmitSpec) -> JobSpec:
    job_prefix = get_tool_config(spec.tool).job_prefix
    return JobSpec(
        executable=spec.args[0],
        arguments=spec.args[1:],
        directory=os.getcwd(),
        stdout_path=spec.stdout_path,
        stderr_path=spec.stderr_path,
        attributes=_create_job_attributes(
            _scheduler_options(spec), job_name=f"{job_prefix}{spec.name}"
        ),
    )


def _create_executor() -> JobExecutor:
    # PSI/J defaults to home directory, which is not what we want
    psij_dir = os.path.join(os.getcwd(), ".psij")

    return JobExecutor.get_instance(
        EXECUTOR_NAME,
        # a BatchSchedulerExecutorConfig rather than the abstract JobExecutorConfig, for its polling defaults
        config=BatchSchedulerExecutorConfig(
            launcher_log_file=Path(psij_dir),
            work_directory=Path(psij_dir),
        ),
    )


def submit_job(spec: SubmitSpec) -> str:
    """Submit a job to Slurm, returning the native job id as soon as it is queued."""
    job = Job(create_job_spec(spec))
    try:
        _create_executor().submit(job)
    except (SubmitException, InvalidJobException, OSError) as e:
        raise ClusterExecutorError(f"failed to submit {spec.name}: {str(e)}") from e

    if not job.native_id:
        raise ClusterExecutorError(f"failed to submit {spec.name}: no job id")
    logger.debug(f"submitted job {job.native_id} {' '.join(spec.args)}")
    return job.native_id
