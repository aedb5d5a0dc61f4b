# re-exports for fastq_pairing.seq

from .repair import RepairError, RepairOutput, derive_sample_name, repair_pair
from .sample_sheet import (
    SampleRow,
    SampleSheetError,
    SampleSheetWriter,
    read_sample_sheet,
    write_sample_sheet,
)
from .trim_galore import has_trimmed_pairs, sample_layout, trim_galore_args

__all__ = [
    "RepairError",
    "RepairOutput",
    "SampleRow",
    "SampleSheetError",
    "SampleSheetWriter",
    "derive_sample_name",
    "has_trimmed_pairs",
    "read_sample_sheet",
    "repair_pair",
    "sample_layout",
    "trim_galore_args",
    "write_sample_sheet",
]
