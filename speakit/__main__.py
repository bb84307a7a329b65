"""Package entry point for ``python -m speakit``.

WHY: Users run the tool as ``python -m speakit <command> ...`` without
installing the console script.

RULES:
- This file must exist for ``python -m speakit`` to work
- All argument handling lives in speakit.cli
"""

from speakit.cli import main

if __name__ == "__main__":
    main()
