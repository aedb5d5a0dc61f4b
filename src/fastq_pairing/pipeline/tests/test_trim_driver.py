import gzip
import json
import logging
import pytest
import stat

from fastq_pairing.cluster.config import EXECUTOR_CONFIG_ENV, executor_config
from fastq_pairing.pipeline.status import Status, StatusLedger
from fastq_pairing.pipeline.trim_driver import main, split_scheduler_args

FAKE_TRIM_GALORE = """#!/bin/sh
while [ $# -gt 0 ]; do
  case "$1" in
    --output_dir) outdir="$2"; shift 2;;
    *) shift;;
  esac
done
echo "Trimming into $outdir"
: > "$outdir/s_R1_val_1.fq.gz"
: > "$outdir/s_R2_val_2.fq.gz"
"""

# keeps a copy of each submit script, and replies like sbatch
FAKE_SBATCH = """#!/bin/sh
n=$(( $(cat "$FAKE_SBATCH_DIR/count" 2>/dev/null || echo 0) + 1 ))
echo $n > "$FAKE_SBATCH_DIR/count"
cp "$1" "$FAKE_SBATCH_DIR/script.$n"
echo "Submitted batch job 100$n"
"""

FAILING_SBATCH = """#!/bin/sh
echo "sbatch: error: invalid partition specified: nope" >&2
exit 1
"""


def _fastq_gz(path) -> str:
    with gzip.open(path, "wb") as f:
        _ = f.write(b"@read0\nACGT\n+\nIIII\n")
    return str(path)


@pytest.fixture(autouse=True)
def unconfigured(monkeypatch):
    monkeypatch.delenv("SLURM_JOB_ID", raising=False)
    monkeypatch.delenv(EXECUTOR_CONFIG_ENV, raising=False)
    executor_config().clear()
    yield
    executor_config().clear()


@pytest.fixture(autouse=True)
def restore_logging():
    """Drop any handlers installed by configure_logging."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)


@pytest.fixture
def bin_dir(tmp_path, monkeypatch):
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    monkeypatch.setenv("PATH", f"{bin_dir}:/usr/bin:/bin")
    monkeypatch.setenv("FAKE_SBATCH_DIR", str(tmp_path))
    return bin_dir


def _install(bin_dir, name: str, body: str):
    path = bin_dir / name
    _ = path.write_text(body)
    path.chmod(path.stat().st_mode | stat.S_IEXEC)


@pytest.fixture
def pairs(tmp_path) -> list[tuple[str, str]]:
    return [
        (_fastq_gz(tmp_path / "a_R1.fq.gz"), _fastq_gz(tmp_path / "a_R2.fq.gz")),
        (_fastq_gz(tmp_path / "b_R1.fq.gz"), _fastq_gz(tmp_path / "b_R2.fq.gz")),
    ]


def _pair_args(pairs: list[tuple[str, str]]) -> list[str]:
    return [arg for r1, r2 in pairs for arg in ["--pair", r1, r2]]


def test_split_scheduler_args():
    assert split_scheduler_args(["--slurm", "-i", "x.csv"]) == (
        ["--slurm", "-i", "x.csv"],
        [],
    )
    assert split_scheduler_args(["--slurm", "--", "-p", "long", "--", "x"]) == (
        ["--slurm"],
        ["-p", "long", "--", "x"],
    )


def test_no_arguments_shows_help(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main([])
    assert excinfo.value.code == 1
    assert "usage: run-trim-galore" in capsys.readouterr().out


def test_no_inputs(tmp_path, capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--local", "-o", str(tmp_path / "out")])
    assert excinfo.value.code == 1
    assert capsys.readouterr().err == (
        "ERROR: Provide -i samplesheet.csv or one/more --pair\n"
    )


def test_local(tmp_path, bin_dir, pairs, capsys):
    _install(bin_dir, "trim_galore", FAKE_TRIM_GALORE)
    out_dir = tmp_path / "out"

    main(["--local", "-o", str(out_dir), "-c", "2", "--group-prefix", "lane1"] + _pair_args(pairs))

    records = StatusLedger.in_dir(str(out_dir)).read()
    assert [(r.group, r.replicate, r.status, r.message) for r in records] == [
        ("lane1", "1", Status.OK, "trim_complete"),
        ("lane1", "2", Status.OK, "trim_complete"),
    ]
    assert (out_dir / "lane1" / "rep2" / "s_R1_val_1.fq.gz").exists()
    out = capsys.readouterr().out
    assert f"Mode=local  Jobs=2  Outdir={out_dir}  Cores=2  Dry-run=0" in out
    assert f"Trimming into {out_dir}/lane1/rep1" in out
    assert "All local jobs finished." in out
    assert f"Summary: {out_dir}/summary.tsv  /  {out_dir}/summary.log" in out


def test_local_sample_sheet(tmp_path, bin_dir, pairs):
    _install(bin_dir, "trim_galore", FAKE_TRIM_GALORE)
    sample_sheet = tmp_path / "samplesheet.csv"
    _ = sample_sheet.write_text(
        "group,replicate,fastq_1,fastq_2,control\n"
        f"A,1,{pairs[0][0]},{pairs[0][1]},\n"
        f"B,1,{pairs[1][0]},,\n"
        f"C,1,{tmp_path}/gone_R1.fq.gz,{pairs[1][1]},\n"
    )
    out_dir = tmp_path / "out"

    main(["-i", str(sample_sheet), "-o", str(out_dir)])

    # one row per sample, in sample sheet order
    records = StatusLedger.in_dir(str(out_dir)).read()
    assert [(r.group, r.status, r.message) for r in records] == [
        ("A", Status.OK, "trim_complete"),
        ("B", Status.FAIL, "missing fields"),
        ("C", Status.FAIL, f"fastq_1 not found: {tmp_path}/gone_R1.fq.gz"),
    ]
    log_lines = (out_dir / "summary.log").read_text().splitlines()
    assert "[VALIDATION-FAIL] B_rep1 :: missing fields" in log_lines


def test_local_undecodable_tool_output(tmp_path, bin_dir, pairs, capsys):
    _install(
        bin_dir,
        "trim_galore",
        FAKE_TRIM_GALORE.replace(
            'echo "Trimming into $outdir"', "printf 'progress \\377\\n'"
        ),
    )
    out_dir = tmp_path / "out"

    main(["--local", "-o", str(out_dir)] + _pair_args(pairs))

    records = StatusLedger.in_dir(str(out_dir)).read()
    assert [(r.replicate, r.status, r.message) for r in records] == [
        ("1", Status.OK, "trim_complete"),
        ("2", Status.OK, "trim_complete"),
    ]
    assert "progress \ufffd" in capsys.readouterr().out


def test_local_outdir_from_environment(tmp_path, bin_dir, pairs, monkeypatch):
    _install(bin_dir, "trim_galore", FAKE_TRIM_GALORE)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TRIM_ROOT", str(tmp_path / "root"))

    main(["--local", "-o", "$TRIM_ROOT/out"] + _pair_args(pairs))

    summary_lines = (tmp_path / "root" / "out" / "summary.tsv").read_text().splitlines()
    assert summary_lines[0] == "group\treplicate\tfastq_1\tfastq_2\tstatus\tmessage"
    assert len(summary_lines) == 3
    assert [
        (r.replicate, r.status)
        for r in StatusLedger.in_dir(str(tmp_path / "root" / "out")).read()
    ] == [("1", Status.OK), ("2", Status.OK)]
    assert not (tmp_path / "$TRIM_ROOT").exists()


def test_local_dry_run(tmp_path, bin_dir, pairs):
    out_dir = tmp_path / "out"

    main(["--dry-run", "-o", str(out_dir)] + _pair_args(pairs))

    records = StatusLedger.in_dir(str(out_dir)).read()
    assert [r.message for r in records] == ["validated_only_dryrun"] * 2
    assert not (out_dir / "manual" / "rep1" / "logs" / "trim_galore.combined.log").exists()


def test_unknown_option(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--local", "--no-such-option"])
    assert excinfo.value.code == 1
    err = capsys.readouterr().err
    assert err.startswith("usage: run-trim-galore")
    assert err.endswith("ERROR: unrecognized arguments: --no-such-option\n")


def test_slurm(tmp_path, bin_dir, pairs, capsys, monkeypatch):
    _install(bin_dir, "sbatch", FAKE_SBATCH)
    monkeypatch.chdir(tmp_path)
    out_dir = tmp_path / "out"

    main(
        ["--slurm", "-o", str(out_dir), "-c", "8"]
        + _pair_args(pairs)
        + ["--", "-p", "long", "--time=4:00:00", "--mem", "16G"]
    )

    # jobs are only submitted, so just the header so far
    assert StatusLedger.in_dir(str(out_dir)).read() == []
    script = (tmp_path / "script.1").read_text()
    for expected in [
        "tg_manual_rep1",
        "long",
        "16G",
        "fastq_pairing.pipeline.trim_worker",
        f"{out_dir}/slurm_manual_rep1.out",
    ]:
        assert expected in script
    assert "tg_manual_rep2" in (tmp_path / "script.2").read_text()

    jobs = json.loads((out_dir / "slurm_jobs.json").read_text())
    assert [(job["sample_tag"], job["job_id"], job["job_name"]) for job in jobs] == [
        ("manual_rep1", "1001", "tg_manual_rep1"),
        ("manual_rep2", "1002", "tg_manual_rep2"),
    ]
    assert jobs[1]["fastq_1"] == pairs[1][0]
    assert jobs[1]["stderr_path"] == f"{out_dir}/slurm_manual_rep2.err"

    out = capsys.readouterr().out
    assert f"Mode=slurm  Jobs=2  Outdir={out_dir}  Cores=8  Dry-run=0" in out
    assert (
        f"Submitted manual_rep2 as JobID 1002 (logs: {out_dir}/slurm_manual_rep2.out"
        f" / {out_dir}/slurm_manual_rep2.err)"
    ) in out
    assert "All Slurm jobs submitted." in out
    assert f"Summary will accumulate in: {out_dir}/summary.tsv  /  {out_dir}/summary.log" in out


def test_slurm_missing_fields_in_sheet_order(tmp_path, bin_dir, pairs, monkeypatch):
    _install(bin_dir, "sbatch", FAKE_SBATCH)
    monkeypatch.chdir(tmp_path)
    sample_sheet = tmp_path / "samplesheet.csv"
    _ = sample_sheet.write_text(
        "group,replicate,fastq_1,fastq_2,control\n"
        f"A,1,{pairs[0][0]},{pairs[0][1]},\n"
        f"B,1,{pairs[1][0]},,\n"
        f"C,1,{pairs[1][0]},{pairs[1][1]},\n"
    )
    out_dir = tmp_path / "out"

    main(["--slurm", "-i", str(sample_sheet), "-o", str(out_dir)])

    records = StatusLedger.in_dir(str(out_dir)).read()
    assert [(r.group, r.status, r.message) for r in records] == [
        ("B", Status.FAIL, "missing fields"),
    ]
    jobs = json.loads((out_dir / "slurm_jobs.json").read_text())
    assert [(job["sample_tag"], job["job_id"]) for job in jobs] == [
        ("A_rep1", "1001"),
        ("C_rep1", "1002"),
    ]


def test_slurm_submission_failure(tmp_path, bin_dir, pairs, capsys, monkeypatch):
    _install(bin_dir, "sbatch", FAILING_SBATCH)
    monkeypatch.chdir(tmp_path)
    out_dir = tmp_path / "out"

    with pytest.raises(SystemExit) as excinfo:
        main(["--slurm", "-o", str(out_dir)] + _pair_args(pairs) + ["--", "-p", "nope"])

    assert excinfo.value.code == 1
    assert capsys.readouterr().err.startswith("ERROR: failed to submit tg_manual_rep1: ")
    assert json.loads((out_dir / "slurm_jobs.json").read_text()) == []


def test_slurm_reserved_option(tmp_path, bin_dir, pairs, capsys, monkeypatch):
    _install(bin_dir, "sbatch", FAKE_SBATCH)
    monkeypatch.chdir(tmp_path)
    with pytest.raises(SystemExit) as excinfo:
        main(["--slurm", "-o", str(tmp_path / "out")] + _pair_args(pairs) + ["--", "--job-name=x"])
    assert excinfo.value.code == 1
    assert "--job-name is set per job" in capsys.readouterr().err
    assert not (tmp_path / "script.1").exists()
