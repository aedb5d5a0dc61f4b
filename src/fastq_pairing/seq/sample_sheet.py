# nf-core style sample sheet helpers

import csv
import logging
import os.path
from dataclasses import dataclass, astuple, replace
from typing import Iterable, Optional, Self

logger = logging.getLogger(__name__)

SAMPLE_SHEET_COLUMNS = ["group", "replicate", "fastq_1", "fastq_2", "control"]
REQUIRED_COLUMNS = ["group", "replicate", "fastq_1", "fastq_2"]


class SampleSheetError(Exception):
    def __init__(self, msg: str, e: Optional[Exception] = None):
        self._msg = msg
        self._e = e

    def __str__(self) -> str:
        if self._e is None:
            return self._msg
        else:
            return "%s: %s" % (self._msg, str(self._e))


def sample_tag(group: str, replicate: str) -> str:
    return "%s_rep%s" % (group, replicate)


@dataclass(frozen=True)
class SampleRow:
    group: str
    replicate: str
    fastq_1: str
    fastq_2: str
    control: str = ""

    @classmethod
    def from_fields(cls, fields: list[str]) -> Self:
        """Construct from raw CSV fields, trimming whitespace, padding short rows and ignoring extra fields."""
        padded = [field.strip() for field in fields[: len(SAMPLE_SHEET_COLUMNS)]]
        padded += [""] * (len(SAMPLE_SHEET_COLUMNS) - len(padded))
        return cls(*padded)

    @property
    def sample_tag(self) -> str:
        return sample_tag(self.group, self.replicate)

    @property
    def is_blank(self) -> bool:
        return not any(astuple(self))

    @property
    def missing_fields(self) -> list[str]:
        """Names of required fields which are empty."""
        return [column for column in REQUIRED_COLUMNS if not getattr(self, column)]

    def with_fastqs(self, fastq_1: str, fastq_2: str) -> Self:
        return replace(self, fastq_1=fastq_1, fastq_2=fastq_2)


def read_sample_sheet(path: str) -> list[SampleRow]:
    """
    Read all non-blank rows of the sample sheet.

    A header which doesn't match SAMPLE_SHEET_COLUMNS is only warned about, and the rows
    are read by position regardless.
    """
    if not os.path.isfile(path):
        raise SampleSheetError("Samplesheet not found: %s" % path)

    try:
        # utf-8-sig strips any byte order mark
        with open(path, "r", encoding="utf-8-sig", newline="") as csv_f:
            reader = csv.reader(csv_f)
            header = next(reader, [])
            if [column.strip() for column in header] != SAMPLE_SHEET_COLUMNS:
                logger.warning(
                    "header mismatch\nExpected: %s\nFound   : %s"
                    % (",".join(SAMPLE_SHEET_COLUMNS), ",".join(header))
                )
            rows = [SampleRow.from_fields(fields) for fields in reader]
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise SampleSheetError("failed to read samplesheet %s" % path, e)

    return [row for row in rows if not row.is_blank]


def write_sample_sheet(path: str, rows: Iterable[SampleRow]):
    with open(path, "w", newline="") as csv_f:
        writer = csv.writer(csv_f, lineterminator="\n")
        writer.writerow(SAMPLE_SHEET_COLUMNS)
        for row in rows:
            writer.writerow(astuple(row))


class SampleSheetWriter:
    """Incremental sample sheet writer, so a partially processed batch still leaves a valid sample sheet."""

    def __init__(self, path: str):
        self._path = path
        write_sample_sheet(path, [])

    @property
    def path(self) -> str:
        return self._path

    def append(self, row: SampleRow):
        with open(self._path, "a", newline="") as csv_f:
            csv.writer(csv_f, lineterminator="\n").writerow(astuple(row))
