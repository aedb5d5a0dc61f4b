import os
import pytest
import stat
from datetime import timedelta

from fastq_pairing.cluster.config import ConfigError, executor_config, init_executor_config
from fastq_pairing.cluster.executor import (
    DEFAULT_DURATION,
    ClusterExecutorError,
    SubmitSpec,
    create_job_spec,
    submit_job,
)
from fastq_pairing.cluster.options import parse_scheduler_options


def _fake_sbatch(bin_dir, body: str) -> str:
    """Install a fake sbatch, which is given the path of the generated submit script."""
    bin_dir.mkdir(exist_ok=True)
    path = bin_dir / "sbatch"
    _ = path.write_text("#!/bin/sh\n" + body)
    path.chmod(path.stat().st_mode | stat.S_IEXEC)
    return str(path)


@pytest.fixture(autouse=True)
def unconfigured():
    executor_config().clear()
    yield
    executor_config().clear()


def _spec(tmp_path, args: list[str] = []) -> SubmitSpec:
    return SubmitSpec(
        tool="trim_galore",
        name="tg_A_rep1",
        args=["python", "-m", "worker", "--group", "A B"],
        stdout_path=str(tmp_path / "slurm_A_rep1.out"),
        stderr_path=str(tmp_path / "slurm_A_rep1.err"),
        options=parse_scheduler_options(args),
    )


def test_create_job_spec(tmp_path):
    job_spec = create_job_spec(
        _spec(tmp_path, ["--partition=normal", "--mem=16G", "-t", "90"])
    )
    assert job_spec.executable == "python"
    assert list(job_spec.arguments) == ["-m", "worker", "--group", "A B"]
    assert str(job_spec.stdout_path) == f"{tmp_path}/slurm_A_rep1.out"
    assert str(job_spec.stderr_path) == f"{tmp_path}/slurm_A_rep1.err"
    assert job_spec.attributes.duration == timedelta(minutes=90)
    assert job_spec.attributes.custom_attributes == {
        "slurm.partition": "normal",
        "slurm.mem": "16G",
        "slurm.job-name": "tg_A_rep1",
    }


def test_create_job_spec_default_duration(tmp_path):
    job_spec = create_job_spec(_spec(tmp_path))
    assert job_spec.attributes.duration == DEFAULT_DURATION
    assert job_spec.attributes.custom_attributes == {"slurm.job-name": "tg_A_rep1"}


def test_create_job_spec_configured(tmp_path):
    config_path = tmp_path / "executor.toml"
    _ = config_path.write_text(
        """
[tools.default]
job_prefix = "fp_"

[tools.default.sbatch]
partition = "default-queue"
time = "2:00:00"
mem = "8G"
"""
    )
    init_executor_config(str(config_path))

    # command line options win over configuration
    job_spec = create_job_spec(_spec(tmp_path, ["--mem=32G"]))
    assert job_spec.attributes.duration == timedelta(hours=2)
    assert job_spec.attributes.custom_attributes == {
        "slurm.partition": "default-queue",
        "slurm.mem": "32G",
        "slurm.job-name": "fp_tg_A_rep1",
    }


def test_create_job_spec_invalid_configured_option(tmp_path):
    config_path = tmp_path / "executor.toml"
    _ = config_path.write_text('[tools.trim_galore.sbatch]\ntime = "whenever"\n')
    init_executor_config(str(config_path))
    with pytest.raises(ConfigError) as excinfo:
        _ = create_job_spec(_spec(tmp_path))
    assert excinfo.value.tool == "trim_galore"
    assert excinfo.value.path == str(config_path)


def test_submit_job(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    script_copy = tmp_path / "submitted.sh"
    bin_dir = tmp_path / "bin"
    _ = _fake_sbatch(bin_dir, f'cp "$1" {script_copy}\necho "Submitted batch job 4242"\n')
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ['PATH']}")

    job_id = submit_job(_spec(tmp_path, ["--partition=normal"]))

    assert job_id == "4242"
    script = script_copy.read_text()
    assert "tg_A_rep1" in script
    assert "--partition" in script
    assert "normal" in script


def test_submit_job_failure(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    bin_dir = tmp_path / "bin"
    _ = _fake_sbatch(
        bin_dir, 'echo "sbatch: error: invalid partition specified" >&2\nexit 1\n'
    )
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ['PATH']}")

    with pytest.raises(ClusterExecutorError) as excinfo:
        _ = submit_job(_spec(tmp_path))
    assert str(excinfo.value).startswith("failed to submit tg_A_rep1: ")
