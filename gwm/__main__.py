"""Module entrypoint for ``python -m gwm``.

All argument parsing and runtime setup happen in ``gwm.cli``.
"""

from .cli import main


if __name__ == "__main__":
    main()
