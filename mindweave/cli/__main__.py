"""Allow ``python -m mindweave.cli`` execution."""

from mindweave.cli.commands import main

if __name__ == "__main__":
    main()
