"""Allow running as `python -m study_forest`."""

from study_forest.cli.main import app

if __name__ == "__main__":
    app()
