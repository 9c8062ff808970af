import sys

from sweepforge.cli import run_cli

sys.exit(run_cli())
