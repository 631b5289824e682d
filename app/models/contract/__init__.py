from app.models.contract.contract import Contract
from app.models.contract.period import Period
from app.models.contract.tsf_mapping import TSFMapping

__all__ = ["Contract", "Period", "TSFMapping"]
