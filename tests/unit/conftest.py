"""
Unit Test Layer Configuration

Pure functions and models only: criteria parsing, rule evaluation,
validation verdicts, value coercion and filter translation. No I/O.

Usage:
    pytest tests/unit -v
    pytest tests/unit -m unit -v
"""
import os
import sys

# Add project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))
