import argparse
import sys

from .error import eprint


class ArgumentParser(argparse.ArgumentParser):
    """Reports usage errors as ERROR: lines with exit status 1, like any other failure."""

    def error(self, message: str):
        self.print_usage(sys.stderr)
        eprint("ERROR: %s" % message)
        sys.exit(1)
