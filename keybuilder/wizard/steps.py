"""Step handlers of the setup wizard.

Each handler takes the wizard context and the dialog renderer, performs
one interaction and returns a StepOutcome for the controller. Failures of
external tools that leave the device in an unknown state are raised as
WizardAbort.
"""

from __future__ import annotations

from typing import Callable

from keybuilder.app.context import WizardContext
from keybuilder.config.settings import resolve_shared_dir
from keybuilder.domain.models import PartitionPlan, SlotIndex, StepOutcome
from keybuilder.logging import LoggerFactory, operation_context
from keybuilder.planning.detection import detect_layout
from keybuilder.planning.sizing import plan_default_sizes
from keybuilder.planning.units import mib_to_iec
from keybuilder.planning.validation import validate_sizes
from keybuilder.storage.bootloader import install_bootloader
from keybuilder.storage.devices import find_removable_devices, get_geometry, unmount_partitions
from keybuilder.storage.exceptions import (
    DeviceError,
    KeybuilderError,
    MountOperationError,
    SizingError,
    TableWriteError,
    WizardAbort,
)
from keybuilder.storage.format import make_filesystems
from keybuilder.storage.mount import setup_target_dirs
from keybuilder.storage.partition_table import assemble_sfdisk_input, write_partition_table
from keybuilder.ui.dialog import RED, DialogRenderer, colorize, format_advisories


StepHandler = Callable[[WizardContext, DialogRenderer], StepOutcome]

FORMAT_CHOICE = "format"
KEEP_CHOICE = "keep"


def pick_device(context: WizardContext, ui: DialogRenderer) -> StepOutcome:
    """Step 1: choose the target USB device."""
    log = LoggerFactory.for_wizard(step=1)
    state = context.state
    state.devices = find_removable_devices()

    if not state.devices:
        log.info("No removable USB devices found.")
        result = ui.yesno(
            "No removable USB device found.\n\nPlug in a USB key and press Refresh.",
            yes_label="Refresh",
        )
        return StepOutcome.REPEAT if result.outcome is StepOutcome.ADVANCE else result.outcome

    items = [(path, label or path) for path, label in sorted(state.devices.items())]
    result = ui.menu(
        context.take_message() + "Select the USB device to set up:",
        items,
        help_label="Refresh",
    )
    if result.outcome is not StepOutcome.ADVANCE:
        return result.outcome

    device = result.output.strip()
    if device not in state.devices:
        context.add_message(colorize(f"Unknown device {device}!", RED))
        return StepOutcome.REPEAT

    if device != state.selected_device:
        state.plan = None
        state.keep_layout = False
    state.selected_device = device
    log.info(f"Selected {device} ({state.devices[device]})")
    return StepOutcome.ADVANCE


def format_or_keep(context: WizardContext, ui: DialogRenderer) -> StepOutcome:
    """Step 2: reformat the device, or keep a compatible existing layout."""
    log = LoggerFactory.for_wizard(step=2)
    state = context.state
    device = state.selected_device

    try:
        geometry = get_geometry(device)
    except DeviceError as error:
        raise WizardAbort(str(error), step=2) from error

    detected, flags = detect_layout(device, geometry, context.config)
    items = [(FORMAT_CHOICE, "Erase the device and create new partitions")]
    if flags.is_compatible:
        text = f"{device} already contains a usable layout."
        items.append((KEEP_CHOICE, "Keep partitions and data, only install GRUB"))
    else:
        text = f"{device} will be repartitioned.\n" + "\n".join(
            f"  - {reason}" for reason in flags.describe()
        )

    result = ui.menu(
        context.take_message() + text + "\n\n" + colorize("Formatting destroys all data!", RED),
        items,
        extra_label="Back",
    )
    if result.outcome is not StepOutcome.ADVANCE:
        return result.outcome

    if result.output.strip() == KEEP_CHOICE and flags.is_compatible:
        state.plan = detected
        state.keep_layout = True
        log.info(f"Keeping existing layout on {device}")
    else:
        if state.plan is None or state.keep_layout or state.plan.geometry != geometry:
            state.plan = PartitionPlan.from_config(geometry, context.config)
        state.keep_layout = False
        log.info(f"{device} will be formatted ({mib_to_iec(geometry.total_mib)})")
    return StepOutcome.ADVANCE


def pick_partitions(context: WizardContext, ui: DialogRenderer) -> StepOutcome:
    """Step 3: choose which partitions to create.

    The ESP is always created. The system partition holds GRUB and cannot be
    left out, so a selection without it is shown again.
    """
    state = context.state
    if state.keep_layout:
        return StepOutcome.ADVANCE

    log = LoggerFactory.for_wizard(step=3)
    plan = state.plan
    first_visit = not any(plan.enabled_flags)
    items = []
    for index, slot in enumerate(plan):
        if index == SlotIndex.ESP:
            continue
        label = f"{slot.name} (min. {mib_to_iec(slot.min_size_mib)})"
        items.append((str(index), label, first_visit or slot.enabled))

    result = ui.checklist(
        context.take_message()
        + f"Select partitions to create. The {plan[SlotIndex.ESP].name} is always created.",
        items,
        extra_label="Back",
    )
    if result.outcome is not StepOutcome.ADVANCE:
        return result.outcome

    selected = {int(tag) for tag in result.selected_tags if tag.isdigit()}
    if SlotIndex.SYSTEM not in selected:
        system_name = plan[SlotIndex.SYSTEM].name
        log.warning(f"{system_name} partition deselected, asking again")
        context.add_message(colorize(f"The {system_name} partition is required!", RED))
        return StepOutcome.REPEAT
    plan.set_enabled(selected | {SlotIndex.ESP})
    plan.assign_nodes(state.selected_device)
    try:
        plan_default_sizes(plan, context.config)
    except SizingError as error:
        log.warning(f"Sizing failed: {error}")
        context.add_message(colorize(f"{error}!", RED))
        return StepOutcome.REPEAT
    return StepOutcome.ADVANCE


def set_sizes(context: WizardContext, ui: DialogRenderer) -> StepOutcome:
    """Step 4: let the user edit sizes until the validator accepts them."""
    state = context.state
    if state.keep_layout:
        return StepOutcome.ADVANCE

    plan = state.plan
    fields = [
        (plan[index].name, mib_to_iec(plan[index].size_mib)) for index in plan.enabled_indices()
    ]
    result = ui.form(
        context.take_message()
        + f"Disk size: {mib_to_iec(plan.geometry.total_mib)}\n"
        + "Edit partition sizes (e.g. 500Mi, 4Gi):",
        fields,
        extra_label="Back",
    )
    if result.outcome is not StepOutcome.ADVANCE:
        return result.outcome

    try:
        report = validate_sizes(result.field_values, plan)
    except ValueError:
        context.add_message(colorize("Please enter a size for every partition!", RED))
        return StepOutcome.REPEAT

    if report.accepted:
        return StepOutcome.ADVANCE
    context.add_message(format_advisories(report.advisories))
    return StepOutcome.REPEAT


def confirm(context: WizardContext, ui: DialogRenderer) -> StepOutcome:
    """Step 5: show what sfdisk would write and ask for confirmation."""
    state = context.state
    if state.keep_layout:
        return StepOutcome.ADVANCE

    device = state.selected_device
    script = assemble_sfdisk_input(device, state.plan)
    try:
        preview = write_partition_table(device, script, dry_run=True)
    except TableWriteError as error:
        raise WizardAbort(str(error), step=5) from error

    result = ui.yesno(
        f"The following partition table will be written to {device}.\n"
        + colorize("All data on the device will be lost!", RED)
        + f"\n\n{preview}",
        yes_label="Write",
        extra_label="Back",
    )
    return result.outcome


def install_components(context: WizardContext, ui: DialogRenderer) -> StepOutcome:
    """Step 6: partition, format, mount and install GRUB."""
    state = context.state
    device = state.selected_device
    plan = state.plan

    try:
        with operation_context("install", device=device, keep_layout=state.keep_layout) as log:
            if not state.keep_layout:
                ui.infobox(f"Writing partition table to {device}...")
                if not unmount_partitions(device):
                    raise MountOperationError(device, "-", "partitions are still mounted")
                write_partition_table(device, assemble_sfdisk_input(device, plan))
                ui.infobox("Creating filesystems...")
                make_filesystems(
                    device,
                    plan,
                    label_use_property=context.label_use_property,
                    default_label=context.default_label,
                )
            else:
                log.info("Keeping partition table and filesystems.")

            ui.infobox("Installing GRUB...")
            targets = setup_target_dirs(plan, context.resources)
            install_bootloader(
                device,
                plan,
                targets,
                context.shared_dir or resolve_shared_dir(),
                context.boot_isos_dir,
            )
    except KeybuilderError as error:
        raise WizardAbort(str(error), step=6) from error

    iso_dir = context.boot_isos_dir.strip("/")
    ui.msgbox(
        f"{device} is ready.\n\n"
        f"Copy ISO files to /{iso_dir} on the {plan[SlotIndex.SYSTEM].name} partition."
    )
    return StepOutcome.ADVANCE


STEPS: dict[int, StepHandler] = {
    1: pick_device,
    2: format_or_keep,
    3: pick_partitions,
    4: set_sizes,
    5: confirm,
    6: install_components,
}
