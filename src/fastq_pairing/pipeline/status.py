import fcntl
import os.path
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, TextIO

STATUS_COLUMNS = ["group", "replicate", "fastq_1", "fastq_2", "status", "message"]


class Status(str, Enum):
    OK = "OK"
    FAIL = "FAIL"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class StatusRecord:
    group: str
    replicate: str
    fastq_1: str
    fastq_2: str
    status: Status
    message: str

    def tsv_line(self) -> str:
        # a field may not break the table
        return "\t".join(
            field.replace("\t", " ").replace("\n", " ")
            for field in [
                self.group,
                self.replicate,
                self.fastq_1,
                self.fastq_2,
                str(self.status),
                self.message,
            ]
        )


@contextmanager
def _locked_append(path: str) -> Iterator[TextIO]:
    """Open for append holding an exclusive lock, since cluster jobs may finish together."""
    with open(path, "a") as f:
        fcntl.flock(f, fcntl.LOCK_EX)
        try:
            yield f
            f.flush()
        finally:
            fcntl.flock(f, fcntl.LOCK_UN)


class StatusLedger:
    """The results table and free-text log for a batch, with one status row per sample."""

    def __init__(self, summary_tsv: str, summary_log: str):
        self._summary_tsv = summary_tsv
        self._summary_log = summary_log

    @classmethod
    def in_dir(cls, out_dir: str, stem: str = "summary") -> "StatusLedger":
        return cls(
            summary_tsv=os.path.join(out_dir, "%s.tsv" % stem),
            summary_log=os.path.join(out_dir, "%s.log" % stem),
        )

    @property
    def summary_tsv(self) -> str:
        return self._summary_tsv

    @property
    def summary_log(self) -> str:
        return self._summary_log

    def create(self):
        """Start afresh, with just the header in the results table and an empty log."""
        with open(self._summary_tsv, "w") as tsv_f:
            _ = tsv_f.write("%s\n" % "\t".join(STATUS_COLUMNS))
        with open(self._summary_log, "w"):
            pass

    def record(self, record: StatusRecord, log_line: str | None = None):
        with _locked_append(self._summary_tsv) as tsv_f:
            _ = tsv_f.write("%s\n" % record.tsv_line())
        if log_line is not None:
            self.note(log_line)

    def note(self, text: str):
        with _locked_append(self._summary_log) as log_f:
            _ = log_f.write("%s\n" % text)

    def read(self) -> list[StatusRecord]:
        """Read back all status rows, mainly for reporting."""
        records = []
        with open(self._summary_tsv, "r") as tsv_f:
            lines = tsv_f.read().splitlines()
        for line in lines[1:]:
            fields = line.split("\t", len(STATUS_COLUMNS) - 1)
            fields += [""] * (len(STATUS_COLUMNS) - len(fields))
            group, replicate, fastq_1, fastq_2, status, message = fields
            records.append(
                StatusRecord(
                    group=group,
                    replicate=replicate,
                    fastq_1=fastq_1,
                    fastq_2=fastq_2,
                    status=Status(status),
                    message=message,
                )
            )
        return records
