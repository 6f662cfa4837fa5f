"""Allow ``python -m petspot_e2e``."""

from petspot_e2e.cli import main

if __name__ == "__main__":
    main()
