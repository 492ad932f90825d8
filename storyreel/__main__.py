"""Package entry point for ``python -m storyreel``.

HOW: Delegates to the CLI's main() function.
"""

from storyreel.cli import main

if __name__ == "__main__":
    main()
