"""Console entry point for python -m vidconsole"""
from vidconsole.cli.commands import app

if __name__ == "__main__":
    app()
