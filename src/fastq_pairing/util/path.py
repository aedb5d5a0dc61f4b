import os.path


def expand(path: str) -> str:
    """Expand both tildes and environment variables."""
    return os.path.expanduser(os.path.expandvars(path))


def common_basename_prefix(*paths: str) -> str:
    """Return the longest common prefix of the basenames of `paths`."""
    return os.path.commonprefix([os.path.basename(path) for path in paths])


def cut_at_last(s: str, marker: str) -> str:
    """Remove everything from the last occurrence of `marker`, if any."""
    if (i := s.rfind(marker)) != -1:
        return s[:i]
    return s
