from .doctor import register_doctor_commands
from .ids import register_ids_commands
from .serve import register_serve_commands

__all__ = [
    "register_doctor_commands",
    "register_ids_commands",
    "register_serve_commands",
]
