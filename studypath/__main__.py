"""Allow ``python -m studypath``."""

from studypath.cli.main import run

if __name__ == "__main__":
    run()
