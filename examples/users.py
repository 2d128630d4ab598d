"""Example: user helpers, including a traced raise."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    name: str
    age: int


def format_user(user: User) -> str:
    return f"{user.name} ({user.age})"  #?


def validate_user(user: User) -> bool:
    return len(user.name) > 0 and user.age > 0  #?


def create_user(name: str, age: int) -> User:
    if not name:
        raise ValueError("Name is required")  #?

    return User(name, age)  #?
