import logging
import os
import toml
from pydantic import BaseModel, ConfigDict, ValidationError
from typing import Optional

logger = logging.getLogger(__name__)

EXECUTOR_CONFIG_ENV = "FASTQ_PAIRING_EXECUTOR_CONFIG"

DEFAULT_TOOL = "default"


class ConfigError(Exception):
    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        tool: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        self.message = message
        self.path = path
        self.tool = tool
        self.cause = cause
        super().__init__(str(self))

    def __str__(self) -> str:
        result = "Configuration error"
        if self.tool is not None:
            result += f" for {self.tool}"
        if self.path is not None:
            result += f" in {self.path}"
        result += f": {self.message}"
        if self.cause is not None:
            result += f": {type(self.cause).__name__} {str(self.cause)}"
        return result


class ToolConfig(BaseModel):
    """Settings for a single tool, any of which may be inherited from the default tool."""

    model_config = ConfigDict(extra="forbid")

    # prefixed to the name of every cluster job for the tool
    job_prefix: str = ""
    # sbatch long options without the leading dashes, e.g. partition = "normal"
    sbatch: dict[str, str | int] = {}
    # extra command line arguments for the tool itself
    args: list[str] = []
    # for BBTools, passed to the JVM as -Xmx
    java_max_heap: Optional[str] = None

    def overlaid(self, other: "ToolConfig") -> "ToolConfig":
        """Return a new config with the fields explicitly set in `other` taking precedence, sbatch options merged."""
        fields = self.model_dump() | other.model_dump(exclude_unset=True)
        fields["sbatch"] = self.sbatch | other.sbatch
        return ToolConfig(**fields)


class ExecutorConfigModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tools: dict[str, ToolConfig] = {}


class ExecutorConfig:
    """
    Tool and cluster executor configuration, from a TOML file like:

    [tools.default]
    job_prefix = "fp_"

    [tools.default.sbatch]
    partition = "normal"
    time = "4:00:00"
    mem = "16G"

    [tools.trim_galore]
    args = ["--quality", "25"]

    [tools.repair]
    java_max_heap = "8g"

    An unconfigured instance behaves as if the file were empty.
    """

    def __init__(self):
        self._config = ExecutorConfigModel()
        self._path: Optional[str] = None

    @property
    def path(self) -> Optional[str]:
        return self._path

    def read_config(self, path: str):
        try:
            raw_config = toml.load(path)
        except (OSError, toml.TomlDecodeError) as ex:
            raise ConfigError(message="invalid TOML configuration", path=path, cause=ex)
        try:
            self._config = ExecutorConfigModel(**raw_config)
        except ValidationError as ex:
            raise ConfigError(message="invalid configuration", path=path, cause=ex)
        self._path = path

    def clear(self):
        self._config = ExecutorConfigModel()
        self._path = None

    def tool_config(self, tool: str) -> ToolConfig:
        default_config = self._config.tools.get(DEFAULT_TOOL, ToolConfig())
        if (specific_config := self._config.tools.get(tool)) is not None:
            return default_config.overlaid(specific_config)
        return default_config


_executor_config = ExecutorConfig()


def executor_config() -> ExecutorConfig:
    return _executor_config


def get_tool_config(tool: str) -> ToolConfig:
    """Return tool config, being the default tool config overlaid with any specific to the tool."""
    tool_config = executor_config().tool_config(tool)
    logger.debug(f"{tool} config: {tool_config}")
    return tool_config


def init_executor_config(config_path: Optional[str] = None):
    """
    Read the executor configuration from `config_path` if given, else from the path in the environment
    variable, if set.  Must be done before any configuration is accessed, otherwise defaults apply.
    """
    path = config_path or os.environ.get(EXECUTOR_CONFIG_ENV)
    if path:
        executor_config().read_config(path)
        logger.debug(f"read executor config from {path}")
    else:
        executor_config().clear()
