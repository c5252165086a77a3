from .controller import next_step, run_wizard
from .steps import STEPS


__all__ = ["STEPS", "next_step", "run_wizard"]
