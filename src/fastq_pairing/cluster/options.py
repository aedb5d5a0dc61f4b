import re
from datetime import timedelta
from typing import Iterable

# sbatch short options we understand, by long name
_SHORT_OPTIONS = {
    "-A": "account",
    "-c": "cpus-per-task",
    "-J": "job-name",
    "-N": "nodes",
    "-n": "ntasks",
    "-p": "partition",
    "-q": "qos",
    "-t": "time",
}

# options which are ours to set for each job
RESERVED_OPTIONS = {"job-name", "output", "error", "chdir"}

_SLURM_TIME_RE = re.compile(
    r"^(?:(?P<days>\d+)-(?P<d_hours>\d+)(?::(?P<d_minutes>\d+)(?::(?P<d_seconds>\d+))?)?"
    r"|(?P<a>\d+)(?::(?P<b>\d+)(?::(?P<c>\d+))?)?)$"
)


class SchedulerOptionError(Exception):
    def __init__(self, msg: str):
        super().__init__(msg)


def parse_slurm_time(value: str) -> timedelta:
    """
    Parse a Slurm time limit, which is one of
    minutes, minutes:seconds, hours:minutes:seconds, days-hours, days-hours:minutes, days-hours:minutes:seconds
    """
    if (m := _SLURM_TIME_RE.match(value.strip())) is None:
        raise SchedulerOptionError("invalid Slurm time: %s" % value)

    def n(group: str) -> int:
        return int(m.group(group) or 0)

    if m.group("days") is not None:
        return timedelta(
            days=n("days"),
            hours=n("d_hours"),
            minutes=n("d_minutes"),
            seconds=n("d_seconds"),
        )
    elif m.group("c") is not None:
        return timedelta(hours=n("a"), minutes=n("b"), seconds=n("c"))
    else:
        return timedelta(minutes=n("a"), seconds=n("b"))


class SchedulerOptions:
    """
    Scheduler options, keyed by sbatch long option name without the leading dashes.

    Later values for the same option replace earlier ones, so configured defaults may be
    overridden from the command line.
    """

    def __init__(self, options: dict[str, str] = {}):
        self._options: dict[str, str] = {}
        self.update(options.items())

    def update(self, options: Iterable[tuple[str, str | int]]):
        for key, value in options:
            value = str(value)
            if key in RESERVED_OPTIONS:
                raise SchedulerOptionError(
                    "scheduler option --%s is set per job and may not be overridden"
                    % key
                )
            if key == "time":
                # fail early rather than at submission
                _ = parse_slurm_time(value)
            self._options[key] = value

    def overlaid(self, other: "SchedulerOptions") -> "SchedulerOptions":
        result = SchedulerOptions(self._options)
        result.update(other.as_dict().items())
        return result

    def as_dict(self) -> dict[str, str]:
        return dict(self._options)

    @property
    def duration(self) -> timedelta | None:
        if (time := self._options.get("time")) is not None:
            return parse_slurm_time(time)
        return None


def _split_options(args: list[str]) -> list[tuple[str, str]]:
    """Split raw sbatch-style arguments into (long-name, value) pairs."""
    pairs = []
    i = 0
    while i < len(args):
        arg = args[i]
        if arg.startswith("--"):
            if "=" in arg:
                key, value = arg[2:].split("=", 1)
                i += 1
            elif i + 1 < len(args) and not args[i + 1].startswith("-"):
                key, value = arg[2:], args[i + 1]
                i += 2
            else:
                raise SchedulerOptionError(
                    "scheduler option without a value is not supported: %s" % arg
                )
        elif arg in _SHORT_OPTIONS:
            if i + 1 >= len(args):
                raise SchedulerOptionError("missing value for %s" % arg)
            key, value = _SHORT_OPTIONS[arg], args[i + 1]
            i += 2
        else:
            raise SchedulerOptionError("unsupported scheduler option: %s" % arg)
        if not key:
            raise SchedulerOptionError("malformed scheduler option: %s" % arg)
        pairs.append((key, value))
    return pairs


def parse_scheduler_options(args: list[str]) -> SchedulerOptions:
    """Parse sbatch options like --partition=normal --time=4:00:00 --mem 16G -c 8."""
    options = SchedulerOptions()
    options.update(_split_options(args))
    return options
