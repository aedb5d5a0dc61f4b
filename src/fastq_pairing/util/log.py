import logging
import sys

LOG_FORMAT = "[%(asctime)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(verbose: bool = False):
    """Timestamped log lines on stdout, interleaved with any tool output we pass through."""
    logging.basicConfig(
        stream=sys.stdout,
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        force=True,
    )


class JobLogAdapter(logging.LoggerAdapter):
    """Prefix each message with the cluster job id, or local when not running as a cluster job."""

    def process(self, msg, kwargs):
        return "[%s] %s" % (self.extra["job_id"], msg), kwargs
