"""Allows running iobench with `python -m iobench`."""

from iobench._cli import main

if __name__ == "__main__":
    main()
