"""Utility modules for pkgr.

This module exports commonly used utility functions.
"""

from pkgr.utils.formatting import (
    console,
    create_package_table,
    create_source_table,
    err_console,
    format_package_row,
    print_error,
    print_info,
    print_success,
    print_warning,
)

__all__ = [
    "console",
    "create_package_table",
    "create_source_table",
    "err_console",
    "format_package_row",
    "print_error",
    "print_info",
    "print_success",
    "print_warning",
]
