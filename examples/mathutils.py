"""Example: arithmetic helpers whose return values are traced."""


def add(a: int, b: int) -> int:
    return a + b  #?


def multiply(a: int, b: int) -> int:
    return a * b  #?


def power(base: int, exponent: int) -> int:
    return base**exponent  #?


def calculate_area(length: int, width: int) -> int:
    return length * width  #?


def calculate_perimeter(length: int, width: int) -> int:
    return 2 * (length + width)  #?
