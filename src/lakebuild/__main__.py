"""Allow ``python -m lakebuild``."""

from lakebuild.app import main

main()
