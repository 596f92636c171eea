import sys

from stageflow.cli import main


raise SystemExit(main(sys.argv[1:]))
