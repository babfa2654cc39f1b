from gatepass.models.auth.user import User

__all__ = ["User"]
