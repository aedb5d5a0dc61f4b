import io
import shutil
import subprocess
import sys
import tempfile
from typing import Optional, TextIO

# conventional shell exit status for a command which could not be found
EXIT_COMMAND_NOT_FOUND = 127


class CalledProcessError(Exception):
    def __init__(self, stderr: str | bytes, returncode: int = 0, cmd: list[str] = []):
        self.stderr = stderr
        self.returncode = returncode
        self.cmd = cmd
        super().__init__(str(self))

    def __str__(self) -> str:
        stderr = (
            self.stderr.decode(errors="replace")
            if isinstance(self.stderr, bytes)
            else self.stderr
        )
        return f"Command `{' '.join(self.cmd)}` failed with exit status {self.returncode}\n{stderr}"


class ExecutableNotFoundError(Exception):
    def __init__(self, executable: str, hint: Optional[str] = None):
        self.executable = executable
        self.hint = hint
        super().__init__(str(self))

    def __str__(self) -> str:
        result = f"{self.executable} not found in PATH"
        if self.hint is not None:
            result += f" ({self.hint})"
        return result


def require_executable(executable: str, hint: Optional[str] = None) -> str:
    """Return the full path of `executable`, failing if it is not on PATH."""
    path = shutil.which(executable)
    if path is None:
        raise ExecutableNotFoundError(executable, hint=hint)
    return path


def run_catching_stderr(*args, **kwargs):
    """Just like subprocess.run, but in case of check=True will catch stderr and format into the exception."""
    is_text = (
        "encoding" in kwargs or "errors" in kwargs or kwargs.get("text", False)
    )

    # use original stderr only if it is a file object matching `is_text`
    original_stderr = kwargs.get("stderr")
    if original_stderr is not None and not (
        (is_text and isinstance(original_stderr, io.TextIOBase))
        or (
            (not is_text)
            and (
                isinstance(original_stderr, io.BufferedIOBase)
                or isinstance(original_stderr, io.RawIOBase)
            )
        )
    ):
        original_stderr = None

    with tempfile.TemporaryFile(mode="w+" if is_text else "wb+") as tmp_f:
        try:
            return subprocess.run(*args, **(kwargs | {"stderr": tmp_f}))

        except subprocess.CalledProcessError as e:
            _ = tmp_f.seek(0)
            raise CalledProcessError(
                stderr=tmp_f.read(), returncode=e.returncode, cmd=e.cmd
            ) from e

        finally:
            if original_stderr is not None:
                _ = tmp_f.seek(0)
                shutil.copyfileobj(tmp_f, original_stderr)


def run_teeing(
    args: list[str], log_path: str, console: Optional[TextIO] = None
) -> int:
    """
    Run a command with stdout and stderr merged, copying each line both to the console and to `log_path`
    as it is produced.  Returns the exit status, which is EXIT_COMMAND_NOT_FOUND if the executable is missing.
    """
    console = console if console is not None else sys.stdout
    with open(log_path, "w", encoding="utf-8") as log_f:
        try:
            process = subprocess.Popen(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except FileNotFoundError as e:
            message = f"{args[0]}: {e.strerror}\n"
            _ = log_f.write(message)
            _ = console.write(message)
            return EXIT_COMMAND_NOT_FOUND

        assert process.stdout is not None
        with process.stdout:
            for line in process.stdout:
                _ = console.write(line)
                console.flush()
                _ = log_f.write(line)
        return process.wait()


def run_to_files(args: list[str], stdout_path: str, stderr_path: str) -> int:
    """Run a command with stdout and stderr each saved to its own file, returning the exit status."""
    with open(stdout_path, "w") as stdout_f, open(stderr_path, "w") as stderr_f:
        try:
            return subprocess.run(args, stdout=stdout_f, stderr=stderr_f).returncode
        except FileNotFoundError as e:
            _ = stderr_f.write(f"{args[0]}: {e.strerror}\n")
            return EXIT_COMMAND_NOT_FOUND
