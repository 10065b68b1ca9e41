#!/usr/bin/env python3
"""
Startup script for the staff operator console.
"""
import sys

from chargeline.operator_cli import main


def print_instructions():
    """Print startup instructions."""
    print("⚡ Chargeline Operator Console")
    print("=" * 50)
    print()
    print("💡 Example Commands:")
    print("   stations                          - See which stations are free")
    print("   start CHG-20240101-0001 90        - Start charging for 90 minutes")
    print("   complete CHG-20240101-0001 20 80 5 paid")
    print("   bill 20 80 5 10 15                - Price a charge")
    print()


if __name__ == "__main__":
    print_instructions()

    try:
        main()
    except Exception as e:
        print(f"\n❌ Error: {e}")
        sys.exit(1)
