from .grid import Cell, Grid, ParseError, Workbook, build_workbook

__all__ = ["Cell", "Grid", "ParseError", "Workbook", "build_workbook"]
