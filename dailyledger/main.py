"""
Entry point for the Daily Ledger Discord bot.

Usage: python -m dailyledger.main
"""

from dailyledger.bot.runner import run


def main():
    run()


if __name__ == "__main__":
    main()
