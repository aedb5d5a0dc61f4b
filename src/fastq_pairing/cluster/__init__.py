# re-exports for fastq_pairing.cluster

from .config import (
    ConfigError,
    EXECUTOR_CONFIG_ENV,
    ToolConfig,
    executor_config,
    get_tool_config,
    init_executor_config,
)
from .options import SchedulerOptionError, SchedulerOptions, parse_scheduler_options
from .executor import ClusterExecutorError, SubmitSpec, submit_job

__all__ = [
    "ClusterExecutorError",
    "ConfigError",
    "EXECUTOR_CONFIG_ENV",
    "SchedulerOptionError",
    "SchedulerOptions",
    "SubmitSpec",
    "ToolConfig",
    "executor_config",
    "get_tool_config",
    "init_executor_config",
    "parse_scheduler_options",
    "submit_job",
]
