from basketlever.services.controller.controller import PROTOCOL_TRADE_FEE_INDEX, Controller, ControllerError
from basketlever.services.controller.interface import IController

__all__ = ["Controller", "ControllerError", "IController", "PROTOCOL_TRADE_FEE_INDEX"]
