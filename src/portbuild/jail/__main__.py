"""Allows `python -m portbuild.jail`."""

from portbuild.jail.cli import main

if __name__ == "__main__":
    main()
