"""Run Coursebook as a module: python -m coursebook."""

from .cli import main_entry

if __name__ == "__main__":
    main_entry()
