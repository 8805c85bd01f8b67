"""Run the parser worker: ``python -m specintake.worker``."""

from specintake.worker.process import main

main()
