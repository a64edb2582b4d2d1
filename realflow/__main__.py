"""
Convenience entry point: python -m realflow [command] [options]
"""

from .cli.app import app

if __name__ == "__main__":
    app()
