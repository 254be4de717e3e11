"""Helpers for tools that wrap cargo to build and run WebAssembly components."""

__version__ = "0.1.0"