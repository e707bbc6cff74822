from .formatter import format_comparison_table, format_quote, format_quotes_table

__all__ = ["format_comparison_table", "format_quote", "format_quotes_table"]
