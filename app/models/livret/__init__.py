from app.models.livret.livret import Livret, HistoricalReport
from app.models.livret.magic_token import MagicToken

__all__ = ["Livret", "HistoricalReport", "MagicToken"]
