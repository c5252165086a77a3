"""Step controller: runs the wizard steps in order until setup completes.

Steps are numbered 1 to 7. Each handler returns a StepOutcome that moves
the wizard forward, repeats the step, goes back one step, or ends it. Step
7 is the terminal step and only reports completion.
"""

from __future__ import annotations

from typing import Mapping, Optional

from keybuilder.app.context import WizardContext
from keybuilder.domain.models import FINAL_STEP, FIRST_STEP, StepOutcome, WizardState
from keybuilder.logging import LoggerFactory
from keybuilder.storage.exceptions import UserExit, WizardAbort
from keybuilder.ui.dialog import DialogRenderer
from keybuilder.wizard.steps import STEPS, StepHandler


log = LoggerFactory.for_wizard()


def next_step(step: int, outcome: StepOutcome) -> int:
    """Return the step that follows *step* for the given outcome.

    Raises:
        UserExit: The user cancelled or pressed ESC
        WizardAbort: The outcome is not recognised
    """
    if outcome is StepOutcome.ADVANCE:
        return step + 1
    if outcome is StepOutcome.REPEAT:
        return step
    if outcome is StepOutcome.BACK:
        return max(FIRST_STEP, step - 1)
    if outcome is StepOutcome.QUIT:
        raise UserExit(step)
    raise WizardAbort(f"Unexpected step outcome {outcome.value}", step=step)


def run_wizard(
    context: WizardContext,
    ui: DialogRenderer,
    steps: Optional[Mapping[int, StepHandler]] = None,
) -> WizardState:
    """Drive the wizard from its current step to completion.

    Args:
        context: Shared wizard context (its state is mutated in place)
        ui: Renderer passed to every step handler
        steps: Step handlers by step number (defaults to STEPS)

    Returns:
        The final wizard state

    Raises:
        UserExit: The user quit the wizard
        WizardAbort: A step failed or returned an unrecognised outcome
    """
    steps = STEPS if steps is None else steps
    state = context.state

    while state.current_step < FINAL_STEP:
        step = state.current_step
        handler = steps.get(step)
        if handler is None:
            raise WizardAbort("No handler for this step", step=step)

        outcome = handler(context, ui)
        state.current_step = next_step(step, outcome)
        log.debug(f"Step {step} -> {outcome.value} -> step {state.current_step}")

    log.success("Finished.")
    return state
