"""Print random values suitable for JWT_SECRET_KEY.

Usage:
    python -m backend.generate_jwt_secret
"""
import secrets

SECRET_BYTES = 64
OPTIONS = 3


def generate_secret() -> str:
    return secrets.token_hex(SECRET_BYTES)


def main() -> None:
    for index in range(1, OPTIONS + 1):
        print(f"Option {index}:")
        print(generate_secret())
        print()
    print("Add one of these to your .env file as JWT_SECRET_KEY=<value>")


if __name__ == "__main__":
    main()
