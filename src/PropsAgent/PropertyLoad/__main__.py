"""Allow ``python -m PropsAgent.PropertyLoad``."""

from .cli import cli_main

if __name__ == "__main__":  # pragma: no cover
    cli_main()
