from fastq_pairing.pipeline.status import Status, StatusLedger, StatusRecord


def _record(status: Status = Status.OK, message: str = "trim_complete") -> StatusRecord:
    return StatusRecord(
        group="A",
        replicate="1",
        fastq_1="a_R1.fq.gz",
        fastq_2="a_R2.fq.gz",
        status=status,
        message=message,
    )


def test_ledger_create_and_record(tmp_path):
    ledger = StatusLedger.in_dir(str(tmp_path))
    assert ledger.summary_tsv == f"{tmp_path}/summary.tsv"
    assert ledger.summary_log == f"{tmp_path}/summary.log"

    ledger.create()
    assert (tmp_path / "summary.tsv").read_text() == (
        "group\treplicate\tfastq_1\tfastq_2\tstatus\tmessage\n"
    )
    assert (tmp_path / "summary.log").read_text() == ""

    ledger.record(_record(), "[OK] A_rep1 :: Completed")
    ledger.record(_record(Status.FAIL, "trim_galore_exit_2"))
    ledger.note("gzip: oops")

    lines = (tmp_path / "summary.tsv").read_text().splitlines()
    assert lines[1:] == [
        "A\t1\ta_R1.fq.gz\ta_R2.fq.gz\tOK\ttrim_complete",
        "A\t1\ta_R1.fq.gz\ta_R2.fq.gz\tFAIL\ttrim_galore_exit_2",
    ]
    assert (tmp_path / "summary.log").read_text() == (
        "[OK] A_rep1 :: Completed\ngzip: oops\n"
    )
    assert ledger.read() == [_record(), _record(Status.FAIL, "trim_galore_exit_2")]


def test_ledger_create_truncates(tmp_path):
    ledger = StatusLedger.in_dir(str(tmp_path), "repair_summary")
    ledger.create()
    ledger.record(_record(), "first run")
    ledger.create()
    assert ledger.read() == []
    assert (tmp_path / "repair_summary.log").read_text() == ""


def test_record_keeps_table_shape():
    line = _record(Status.FAIL, "bad\tthing\nhappened").tsv_line()
    assert line.split("\t") == [
        "A",
        "1",
        "a_R1.fq.gz",
        "a_R2.fq.gz",
        "FAIL",
        "bad thing happened",
    ]
