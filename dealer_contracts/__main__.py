"""Entry point for python -m dealer_contracts"""

from dealer_contracts.cli.main import app

if __name__ == "__main__":
    app()
