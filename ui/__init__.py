"""UI layer -- Rich dashboard and output formatters."""

from .dashboard import (
    console,
    print_client_info,
    print_header,
    print_history,
    print_result,
)
from .output import (
    append_csv,
    create_result_json,
    format_csv_header,
    format_csv_row,
    format_text_result,
    save_json,
)

__all__ = [
    "append_csv",
    "console",
    "create_result_json",
    "format_csv_header",
    "format_csv_row",
    "format_text_result",
    "print_client_info",
    "print_header",
    "print_history",
    "print_result",
    "save_json",
]
