"""Point-to-point links over TCP, distributed mutual exclusion, a chat, and sorting exercises."""

__version__ = "0.1.0"
__all__ = ["chat", "dimex", "pp2plink", "sorting", "use_dimex"]