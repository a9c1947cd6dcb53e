"""CLI entry point for python -m oneshot"""
from oneshot.cli.commands import app

if __name__ == "__main__":
    app()
