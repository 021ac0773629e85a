"""Enables running the CLI as ``python -m cellgraph``."""

from cellgraph.cli.main import main

if __name__ == "__main__":
    main()
