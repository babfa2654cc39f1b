import logging
import os
from datetime import datetime

from jinja2 import Environment, FileSystemLoader, select_autoescape

from gatepass.core.exceptions import InvalidTransitionError
from gatepass.models.gate_pass.gate_pass import GatePass
from gatepass.services.gate_pass.projection import build_pass_response
from gatepass.services.gate_pass.state_machine import FINALIZED_STATES
from gatepass.utils.date_time import local_zone

logger = logging.getLogger(__name__)

TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "templates", "print")


class GatePassRenderer:
    """Printable HTML gate pass; rendering never touches the stored pass"""

    def __init__(self):
        self.template_env = Environment(
            loader=FileSystemLoader(TEMPLATE_DIR),
            autoescape=select_autoescape(["html"]),
        )
        self.template_env.filters["local_time"] = self._local_time

    @staticmethod
    def _local_time(value: datetime, fmt: str = "%d %b %Y %H:%M") -> str:
        if value is None:
            return "-"
        return value.astimezone(local_zone()).strftime(fmt)

    def render(self, gate_pass: GatePass, now: datetime) -> str:
        if gate_pass.status not in FINALIZED_STATES:
            raise InvalidTransitionError(
                f"Only approved gate passes can be printed (status is {gate_pass.status.value})"
            )
        template = self.template_env.get_template("gate_pass.html")
        html = template.render(gate_pass=build_pass_response(gate_pass, now), printed_at=now)
        logger.info(f"Rendered printable gate pass {gate_pass.id}")
        return html
