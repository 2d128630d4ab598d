"""Example: an application whose marked lines end up in the trace.

Run with:

    python -m inline_debugger --inline-debugger-print examples/app.py
"""

from mathutils import add, calculate_area, calculate_perimeter, multiply, power
from users import User, create_user, format_user, validate_user


def run_app() -> dict:
    # Math operations
    a = 5  #?
    b = 3  #?

    total = add(a, b)  #?
    product = multiply(a, b)  #?
    power_result = power(a, b)  #?

    print("Math results:", {"sum": total, "product": product, "power": power_result})  #?

    # Geometry calculations
    length = 10  #?
    width = 5  #?

    area = calculate_area(length, width)  #?
    perimeter = calculate_perimeter(length, width)  #?

    print("Area calculations:", {"area": area, "perimeter": perimeter})  #?

    # User operations
    user = User(name="John", age=25)
    formatted = format_user(user)  #?
    is_valid = validate_user(user)  #?

    print("User operations:", {"formatted": formatted, "is_valid": is_valid})  #?

    # Error handling
    error_message = ""
    try:
        create_user("", 30)  #?
    except ValueError as error:
        error_message = str(error)
        print("Caught error:", error_message)  #?

    return {
        "math": {"sum": total, "product": product, "power": power_result},
        "geometry": {"area": area, "perimeter": perimeter},
        "user": {"formatted": formatted, "is_valid": is_valid},
        "error": error_message,
    }


if __name__ == "__main__":
    result = run_app()
    print("ok", result["math"]["sum"], result["geometry"]["area"], result["error"])
