"""Console formatting helpers."""


def ansi(value, colour):
    return f'\x1b[{colour}m{value}\x1b[0m'
