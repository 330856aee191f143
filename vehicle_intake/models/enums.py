# vehicle_intake/models/enums.py
"""
Closed vocabularies used by the intake models.
Values are the strings stored in the database and shown on the kanban boards.
"""

from enum import Enum
from typing import Optional


class CardStatus(str, Enum):
    """
    Homologation card workflow, in board order.

    HOMOLOGADO is terminal: once a card or vehicle reaches it the pipeline
    never moves it back. UNKNOWN captures stored values outside the board
    and ranks below every real column.
    """
    UNKNOWN = "unknown"
    HOMOLOGAR = "homologar"                                  # Awaiting review
    EM_HOMOLOGACAO = "em_homologacao"                        # Under review
    AGENDAMENTO_TESTE = "agendamento_teste"                  # Test being scheduled
    EXECUCAO_TESTE = "execucao_teste"                        # Test running
    EM_TESTES_FINAIS = "em_testes_finais"                    # Final checks
    ARMAZENAMENTO_PLATAFORMA = "armazenamento_plataforma"    # Publishing to platform
    HOMOLOGADO = "homologado"                                # Approved

    @property
    def rank(self) -> int:
        return _CARD_ORDER.index(self)

    @property
    def is_terminal(self) -> bool:
        return self is CardStatus.HOMOLOGADO

    @classmethod
    def parse(cls, value: Optional[str]) -> "CardStatus":
        if isinstance(value, cls):
            return value
        if not value:
            return cls.UNKNOWN
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.UNKNOWN


_CARD_ORDER = list(CardStatus)


def never_regress(current: Optional[str], proposed: str) -> str:
    """Keep a terminal status; otherwise accept the proposed one."""
    if CardStatus.parse(current).is_terminal:
        return CardStatus.HOMOLOGADO.value
    return proposed


class UsageType(str, Enum):
    PARTICULAR = "particular"
    COMERCIAL = "comercial"
    FROTA = "frota"
    TELEMETRIA_GPS = "telemetria_gps"
    TELEMETRIA_CAN = "telemetria_can"
    COPILOTO_2_CAMERAS = "copiloto_2_cameras"
    COPILOTO_4_CAMERAS = "copiloto_4_cameras"
    OUTRO = "outro"                                          # Anything the sales system adds later

    @classmethod
    def parse(cls, value: Optional[str]) -> "UsageType":
        """'Telemetria GPS' -> TELEMETRIA_GPS; unknown text -> OUTRO."""
        if not value:
            return cls.OUTRO
        key = "_".join(str(value).strip().lower().split())
        try:
            return cls(key)
        except ValueError:
            return cls.OUTRO


class OrderStatus(str, Enum):
    NOVOS = "novos"              # Just created
    PRODUCAO = "producao"        # Kit being assembled
    AGUARDANDO = "aguardando"    # Waiting on customer/logistics
    ENVIADO = "enviado"          # Shipped
    STANDBY = "standby"
