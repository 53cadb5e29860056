"""Shared test constants and helpers for fiberio tests."""

LOCALHOST = "http://localhost/"
LOCALHOST_BODY = b"<html>it works</html>"
