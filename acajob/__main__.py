"""Allow ``python -m acajob``."""

from acajob.cli import main

if __name__ == "__main__":
    main()
