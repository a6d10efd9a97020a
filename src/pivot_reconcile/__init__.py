"""pivot-reconcile — Merge hourly user pivot sheets into one record set."""

__version__ = "0.2.0"

UNITS_SHEET: str = "ALTO GIRO"
CASES_SHEET: str = "BAIXO GIRO"
USER_LABEL: str = "USUÁRIO"
TOTAL_MARKER: str = "TOTAL"
DEFAULT_WINDOW: int = 3

CSV_COLUMNS: list[str] = ["Usuario", "Hora", "Unidades", "Caixas"]
