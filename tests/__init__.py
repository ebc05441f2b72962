"""Test suite for the bank statement converter."""
