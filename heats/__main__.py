"""Module entrypoint for ``python -m heats``.

This keeps module-mode execution behavior identical to the ``heats`` client
script. All argument parsing happens in ``heats.cli``.
"""

from .cli import main


if __name__ == "__main__":
    main()
