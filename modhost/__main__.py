"""Allow running modhost as a module: python -m modhost."""

from modhost.runner import main

if __name__ == "__main__":
    main()
